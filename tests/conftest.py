import os
import tempfile

# Configure before any project module reads the environment
os.environ["APPLICATION_STORE"] = "memory"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="uploads-")
os.environ["ADMIN_EMAILS"] = "admin@example.com"
os.environ.pop("GOOGLE_APPLICATION_CREDENTIALS", None)
os.environ.pop("FIREBASE_STORAGE_BUCKET", None)

from datetime import date

import pytest

from dtos.application_dtos import (
    AcademicInfo,
    ApplicationDocuments,
    ApplicationDraft,
    BankDetails,
    DocumentRef,
    Essays,
    FamilyFinancialInfo,
    Institution,
    ParentInfo,
    PersonalInfo,
)
from services import notification_svc
from services.application_store import MemoryApplicationStore, set_application_store
from services.pubsub import pubsub
from services.scholarship_svc import MemoryScholarshipCatalog, set_scholarship_catalog

SCHOLARSHIP_IDS = ("sch-0", "sch-1", "sch-2", "draft-only", "a", "b")


class NotificationRecorder:
    def __init__(self):
        self.emails = []
        self.published = []

    def enqueue(self, to_email, kind, context):
        self.emails.append((to_email, kind, context))

    def publish(self, channel, message):
        self.published.append((channel, message))
        return 1

    @property
    def kinds(self):
        return [kind for _, kind, _ in self.emails]


@pytest.fixture(autouse=True)
def store():
    store = MemoryApplicationStore()
    set_application_store(store)
    yield store
    set_application_store(None)


@pytest.fixture(autouse=True)
def scholarships():
    catalog = MemoryScholarshipCatalog()
    for scholarship_id in SCHOLARSHIP_IDS:
        catalog.add(scholarship_id, {"name": "Merit Scholarship", "status": "active", "deadline": "2099-12-31"})
    set_scholarship_catalog(catalog)
    yield catalog
    set_scholarship_catalog(None)


@pytest.fixture(autouse=True)
def notifications(monkeypatch):
    recorder = NotificationRecorder()
    monkeypatch.setattr(notification_svc, "enqueue_notification", recorder.enqueue)
    monkeypatch.setattr(pubsub, "publish", recorder.publish)
    return recorder


def build_complete_draft() -> ApplicationDraft:
    return ApplicationDraft(
        personal_info=PersonalInfo(
            full_name="Asha Rao",
            email="a@x.com",
            phone="999",
            date_of_birth=date(2000, 1, 1),
            gender="female",
            national_id_number="123412341234",
        ),
        academic_info=AcademicInfo(
            education_level="undergraduate",
            course="B.Sc Physics",
            institution=Institution(name="St. Xavier's College"),
            enrollment_number="SXC-2021-044",
        ),
        family_financial_info=FamilyFinancialInfo(
            father=ParentInfo(name="Ravi Rao", occupation="Farmer", income=120000),
            total_family_income=180000,
            bank_details=BankDetails(account_number="0012345678"),
        ),
        essays=Essays(
            statement_of_purpose="I want to study physics and teach in my district.",
            why_deserve_scholarship="My family cannot afford the fees.",
            career_goals="Become a research scientist.",
        ),
        documents=ApplicationDocuments(
            id_proof=DocumentRef(filename="id.pdf", url="u1"),
            photograph=DocumentRef(filename="me.jpg", url="u2"),
            marksheets=[DocumentRef(filename="10th.pdf", url="u3")],
            income_certificate=DocumentRef(filename="income.pdf", url="u4"),
        ),
    )


@pytest.fixture
def complete_draft():
    return build_complete_draft()
