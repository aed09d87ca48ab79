"""Tests for sign-up, document resubmission, verification and their emails."""

from unittest.mock import MagicMock, patch

import pytest
from django.contrib.auth import get_user_model

from django_confreg.accounts.forms import RegisterForm
from django_confreg.accounts.models import Member
from django_confreg.accounts.services import (
    approve_member,
    list_verifications,
    register_member,
    reject_member,
    resubmit_document,
)
from django_confreg.auth import Principal
from django_confreg.errors import Conflict, DomainRuleViolation, NotFound, Unauthorized
from django_confreg.notifications.models import OutboundEmail

User = get_user_model()

DOC_URL = "https://files.example.com/student-card.pdf"


def signup(**overrides):
    data = {
        "first_name": "Napat",
        "last_name": "Srisuk",
        "email": "napat@example.com",
        "password": "s3cret-pass",
        "account_type": "thaiStudent",
        "organization": "Mahidol University",
        "id_card": "1100700123456",
        "verification_doc_url": DOC_URL,
    }
    data.update(overrides)
    return data


def _clean(data):
    form = RegisterForm(data)
    assert form.is_valid(), form.errors
    return form.cleaned_data


# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def reviewer(db):
    user = User.objects.create_user(username="verifier", email="verifier@example.com", password="x", is_staff=True)
    return Principal.from_user(user)


@pytest.fixture
def student(db):
    return register_member(_clean(signup()))


@pytest.fixture
def rejected_student(student, reviewer):
    return reject_member(reviewer, student.pk, "Card has expired")


@pytest.fixture
def email_client():
    client = MagicMock()
    client.send_template.return_value = "msg-1"
    with patch("django_confreg.notifications.services.get_email_client", return_value=client):
        yield client


# =============================================================================
# TestRegisterForm
# =============================================================================


@pytest.mark.unit
class TestRegisterForm:
    @pytest.mark.parametrize(
        ("account_type", "role"),
        [
            ("thaiStudent", "thstd"),
            ("internationalStudent", "interstd"),
            ("thaiProfessional", "thpro"),
            ("internationalProfessional", "interpro"),
        ],
    )
    def test_account_type_maps_to_role(self, account_type, role):
        assert _clean(signup(account_type=account_type))["role"] == role

    def test_email_is_lowercased(self):
        assert _clean(signup(email="Napat@Example.COM"))["email"] == "napat@example.com"

    def test_student_needs_document(self):
        form = RegisterForm(signup(verification_doc_url=""))

        assert not form.is_valid()
        assert list(form.errors) == ["verification_doc_url"]

    def test_professional_without_document(self):
        assert _clean(signup(account_type="thaiProfessional", verification_doc_url=""))["role"] == "thpro"

    @pytest.mark.parametrize(
        ("field", "value"),
        [("id_card", "12345"), ("password", "short"), ("account_type", "visitor"), ("email", "nope")],
    )
    def test_invalid_fields(self, field, value):
        form = RegisterForm(signup(**{field: value}))

        assert not form.is_valid()
        assert field in form.errors


# =============================================================================
# TestRegisterMember
# =============================================================================


@pytest.mark.django_db
class TestRegisterMember:
    def test_student_waits_for_approval(self, student):
        assert student.role == Member.Role.THAI_STUDENT
        assert student.status == Member.Status.PENDING_APPROVAL
        assert student.country == "Thailand"
        assert student.institution == "Mahidol University"
        assert student.verification_doc_url == DOC_URL
        assert student.user.username == "napat@example.com"
        assert student.user.check_password("s3cret-pass")

    def test_professional_is_active(self, db):
        member = register_member(
            _clean(
                signup(
                    email="ploy@example.com",
                    account_type="internationalProfessional",
                    id_card="",
                    country="Japan",
                    pharmacy_license_id="PH-123",
                    verification_doc_url="",
                )
            )
        )

        assert member.status == Member.Status.ACTIVE
        assert member.country == "Japan"
        assert member.thai_id_card is None
        assert member.pharmacy_license_id == "PH-123"

    def test_thai_accounts_are_domestic(self, db):
        member = register_member(_clean(signup(account_type="thaiProfessional", country="Laos")))

        assert member.country == "Thailand"

    def test_duplicate_email(self, student):
        with pytest.raises(Conflict, match="Email already exists") as exc_info:
            register_member(_clean(signup(email="NAPAT@example.com", id_card="")))

        assert exc_info.value.code == "EMAIL_EXISTS"

    @pytest.mark.parametrize(
        ("field", "value", "code"),
        [
            ("id_card", "1100700123456", "DUPLICATE_ID_CARD"),
            ("passport_id", "AA1234567", "DUPLICATE_PASSPORT"),
            ("pharmacy_license_id", "PH-999", "DUPLICATE_LICENSE"),
        ],
    )
    def test_duplicate_identity_document(self, db, field, value, code):
        register_member(_clean(signup(passport_id="AA1234567", pharmacy_license_id="PH-999")))

        overrides = {"email": "other@example.com", "id_card": "", "passport_id": "", "pharmacy_license_id": ""}
        overrides[field] = value
        with pytest.raises(Conflict) as exc_info:
            register_member(_clean(signup(**overrides)))

        assert exc_info.value.code == code
        assert User.objects.filter(email="other@example.com").count() == 0

    def test_pending_email_after_commit(self, db, email_client, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            register_member(_clean(signup()))
            assert OutboundEmail.objects.count() == 0

        email = OutboundEmail.objects.get()
        assert email.template == "registration_pending"
        assert email.to_email == "napat@example.com"
        assert email.variables["firstName"] == "Napat"

    def test_professional_gets_no_pending_email(self, db, email_client, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            register_member(_clean(signup(account_type="thaiProfessional")))

        assert OutboundEmail.objects.count() == 0


# =============================================================================
# TestVerification
# =============================================================================


@pytest.mark.django_db
class TestVerification:
    def test_approve(self, student, reviewer):
        member = approve_member(reviewer, student.pk)

        assert member.status == Member.Status.ACTIVE
        assert member.reviewed_by_id == reviewer.user_id
        assert member.reviewed_at is not None

    def test_reject_records_reason(self, rejected_student, reviewer):
        rejected_student.refresh_from_db()

        assert rejected_student.status == Member.Status.REJECTED
        assert rejected_student.rejection_reason == "Card has expired"

    @pytest.mark.parametrize("action", ["approve", "reject"])
    def test_unknown_member(self, reviewer, action):
        with pytest.raises(NotFound, match="User not found"):
            if action == "approve":
                approve_member(reviewer, 999)
            else:
                reject_member(reviewer, 999, "No document")

    def test_decision_emails(self, student, reviewer, email_client, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            reject_member(reviewer, student.pk, "Blurry photo")
        with django_capture_on_commit_callbacks(execute=True):
            approve_member(reviewer, student.pk)

        rejected, approved = OutboundEmail.objects.order_by("id")
        assert rejected.template == "verification_rejected"
        assert rejected.variables["rejectionReason"] == "Blurry photo"
        assert approved.template == "verification_approved"
        assert approved.to_email == "napat@example.com"


# =============================================================================
# TestResubmitDocument
# =============================================================================


@pytest.mark.django_db
class TestResubmitDocument:
    def test_rejected_student_goes_back_to_review(self, rejected_student):
        member = resubmit_document("napat@example.com", "s3cret-pass", "https://files.example.com/new.pdf")

        assert member.status == Member.Status.PENDING_APPROVAL
        assert member.verification_doc_url == "https://files.example.com/new.pdf"
        assert member.rejection_reason == ""
        assert member.resubmission_count == 1

    def test_wrong_password(self, rejected_student):
        with pytest.raises(Unauthorized, match="Invalid email or password"):
            resubmit_document("napat@example.com", "nope", DOC_URL)

    def test_only_rejected_accounts(self, student):
        with pytest.raises(DomainRuleViolation) as exc_info:
            resubmit_document("napat@example.com", "s3cret-pass", DOC_URL)

        assert exc_info.value.code == "INVALID_STATUS"

    def test_only_students(self, db, reviewer):
        member = register_member(_clean(signup(account_type="thaiProfessional")))
        reject_member(reviewer, member.pk, "License not found")

        with pytest.raises(DomainRuleViolation) as exc_info:
            resubmit_document("napat@example.com", "s3cret-pass", DOC_URL)

        assert exc_info.value.code == "NOT_STUDENT"

    def test_confirmation_email(self, rejected_student, email_client, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            resubmit_document("napat@example.com", "s3cret-pass", DOC_URL)

        email = OutboundEmail.objects.get()
        assert email.template == "document_resubmitted"
        assert email.variables["resubmissionCount"] == 1


# =============================================================================
# TestListVerifications
# =============================================================================


@pytest.mark.django_db
class TestListVerifications:
    def test_only_members_with_documents(self, student):
        professional = signup(
            email="pro@example.com", account_type="thaiProfessional", id_card="", verification_doc_url=""
        )
        register_member(_clean(professional))

        result = list_verifications()

        assert result["pagination"] == {"page": 1, "limit": 10, "total": 1, "totalPages": 1}
        row = result["verifications"][0]
        assert row["id"] == student.pk
        assert row["name"] == "Napat Srisuk"
        assert row["university"] == "Mahidol University"
        assert row["studentId"] == "1100700123456"
        assert row["role"] == "thai-student"
        assert row["status"] == "pending"
        assert row["documentUrl"] == DOC_URL
        assert row["rejectionReason"] is None

    def test_filters(self, rejected_student, db):
        register_member(_clean(signup(email="kanya@example.com", first_name="Kanya", id_card="1100700999999")))

        assert list_verifications(status="rejected")["pagination"]["total"] == 1
        assert list_verifications(search="kanya")["verifications"][0]["email"] == "kanya@example.com"
        rejected = list_verifications(status="rejected")["verifications"][0]
        assert rejected["status"] == "rejected"
        assert rejected["rejectionReason"] == "Card has expired"
