import os
from datetime import datetime
from io import BytesIO
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from loguru import logger
from PIL import Image
from pypdf import PdfReader, PdfWriter
from pypdf.generic import ArrayObject, DictionaryObject, NameObject, TextStringObject
from reportlab.pdfgen import canvas
from sqlmodel import SQLModel, Session, create_engine

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

from pdfdesk.main import app  # noqa: E402
from pdfdesk import db as db_module  # noqa: E402
from pdfdesk import ledger as ledger_module  # noqa: E402
from pdfdesk.db import get_session  # noqa: E402
from pdfdesk.engine.collaborators import DeleteOutcome, RecordOutcome  # noqa: E402
from pdfdesk.engine.models import Entitlement, SavedSignatureEntry  # noqa: E402

FORM_PAGE = (600, 800)
NAME_RECT = (100, 650, 300, 674)
ROTATIONS = (90, 180, 270)


def build_pdf(pages=((612, 792),), rotation: int = 0, label: str = "Page") -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=pages[0], invariant=1)
    for i, size in enumerate(pages):
        c.setPageSize(size)
        c.setFont("Helvetica", 18)
        c.drawString(40, size[1] - 60, f"{label} {i + 1}")
        c.showPage()
    c.save()
    if not rotation:
        return buf.getvalue()
    # /Rotate is set with pypdf so the MediaBox stays the unrotated page size
    writer = PdfWriter(clone_from=PdfReader(BytesIO(buf.getvalue())))
    for page in writer.pages:
        page.rotate(rotation)
    out = BytesIO()
    writer.write(out)
    return out.getvalue()


def displayed_size(rotation: int):
    if rotation % 180 == 90:
        return FORM_PAGE[1], FORM_PAGE[0]
    return FORM_PAGE


def build_form_pdf() -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=FORM_PAGE, invariant=1)
    c.setFont("Helvetica", 12)
    c.drawString(100, 700, "Application form")
    form = c.acroForm
    x0, y0, x1, y1 = NAME_RECT
    form.textfield(name="name", value="", x=x0, y=y0, width=x1 - x0, height=y1 - y0,
                   fontName="Helvetica", fontSize=12, borderStyle="inset", forceBorder=True)
    form.checkbox(name="agree", checked=False, x=100, y=600, size=16, buttonStyle="check")
    form.choice(name="country", value="France", options=["France", "Germany", "Italy"],
                x=100, y=550, width=150, height=20, fontName="Helvetica", fontSize=10)
    form.radio(name="plan", value="basic", selected=True, x=100, y=500, size=14)
    form.radio(name="plan", value="premium", selected=False, x=130, y=500, size=14)
    c.showPage()
    c.setFont("Helvetica", 12)
    c.drawString(100, 700, "Second page")
    c.acroForm.textfield(name="notes", value="draft", x=100, y=600, width=300, height=24,
                         fontName="Helvetica", fontSize=12)
    c.showPage()
    c.save()
    return buf.getvalue()


def build_nested_form_pdf() -> bytes:
    """The form with "notes" moved under a parent "grp" and renamed "name",
    so two fields share the partial name "name"."""
    writer = PdfWriter(clone_from=PdfReader(BytesIO(build_form_pdf())))
    fields = writer.root_object["/AcroForm"]["/Fields"]
    index = next(i for i, ref in enumerate(fields) if ref.get_object()["/T"] == "notes")
    notes_ref = fields[index]
    group_ref = writer._add_object(DictionaryObject({
        NameObject("/T"): TextStringObject("grp"),
        NameObject("/Kids"): ArrayObject([notes_ref]),
    }))
    notes = notes_ref.get_object()
    notes[NameObject("/T")] = TextStringObject("name")
    notes[NameObject("/Parent")] = group_ref
    fields[index] = group_ref
    out = BytesIO()
    writer.write(out)
    return out.getvalue()


def build_image(size=(40, 20), color=(255, 0, 0, 255), fmt="PNG", mode="RGBA") -> bytes:
    img = Image.new(mode, size, color if mode == "RGBA" else color[:3])
    if fmt in ("JPEG", "BMP") and img.mode == "RGBA":
        img = img.convert("RGB")
    out = BytesIO()
    img.save(out, format=fmt)
    return out.getvalue()


@pytest.fixture
def make_pdf():
    return build_pdf


@pytest.fixture
def make_image():
    return build_image


@pytest.fixture
def simple_pdf() -> bytes:
    return build_pdf()


@pytest.fixture
def three_page_pdf() -> bytes:
    return build_pdf(pages=((612, 792),) * 3)


@pytest.fixture(params=ROTATIONS)
def rotation(request) -> int:
    return request.param


@pytest.fixture
def rotated_pdf(rotation) -> bytes:
    return build_pdf(pages=(FORM_PAGE,), rotation=rotation)


@pytest.fixture
def form_pdf() -> bytes:
    return build_form_pdf()


@pytest.fixture
def nested_form_pdf() -> bytes:
    return build_nested_form_pdf()


@pytest.fixture
def red_png() -> bytes:
    return build_image(size=(50, 50), color=(255, 0, 0, 255))


@pytest.fixture
def log_messages():
    messages: List[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


class FakeEntitlement:
    def __init__(self, plan="pro", remaining: Optional[int] = None, can_use_timestamp=True):
        self.current = Entitlement(plan=plan, daily_limit_remaining=remaining, can_use_timestamp=can_use_timestamp)
        self.calls = 0

    def get_entitlement(self) -> Entitlement:
        self.calls += 1
        return self.current


class FakePersistence:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.records = []
        self.signatures: Dict[str, SavedSignatureEntry] = {}

    def record_document(self, kind, action, size_bytes):
        if self.fail:
            raise RuntimeError("ledger offline")
        self.records.append((kind, action, size_bytes))
        return RecordOutcome.OK

    def list_saved_signatures(self):
        return list(self.signatures.values())

    def get_signature(self, signature_id):
        return self.signatures.get(signature_id)

    def save_signature(self, name, image_bytes):
        sig_id = f"sig{len(self.signatures) + 1}"
        self.signatures[sig_id] = SavedSignatureEntry(sig_id, name, image_bytes, datetime(2024, 1, 1))
        return sig_id

    def delete_signature(self, signature_id):
        if self.signatures.pop(signature_id, None) is None:
            return DeleteOutcome.NOT_FOUND
        return DeleteOutcome.OK


@pytest.fixture
def fake_entitlement():
    return FakeEntitlement()


@pytest.fixture
def fake_persistence():
    return FakePersistence()


@pytest.fixture(scope="session")
def test_engine(tmp_path_factory):
    db_path = tmp_path_factory.mktemp("data") / "test.db"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    return engine


@pytest.fixture
def setup_db(test_engine):
    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)
    yield
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def session(test_engine, setup_db):
    with Session(test_engine) as s:
        yield s


@pytest.fixture
def pro_plan(monkeypatch):
    monkeypatch.setattr(ledger_module, "PLAN", "pro")


@pytest.fixture
def client(test_engine, setup_db):
    db_module.engine = test_engine

    def override_session():
        with Session(test_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
