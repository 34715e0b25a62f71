import pytest

from modules.applications.models import (
    Actor,
    ApplicantType,
    ApplicationRecord,
    ApplicationStatus,
    UnsupportedApplicantType,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("student", ApplicantType.STUDENT),
        (" S ", ApplicantType.STUDENT),
        ("Teachers", ApplicantType.TEACHER),
        (ApplicantType.TEACHER, ApplicantType.TEACHER),
    ],
)
def test_applicant_type_aliases(raw, expected):
    assert ApplicantType.parse(raw) is expected


def test_unknown_applicant_type_is_rejected():
    with pytest.raises(UnsupportedApplicantType):
        ApplicantType.parse("parent")


@pytest.mark.parametrize(
    "text, expected",
    [
        ("", ApplicationStatus.PENDING),
        ("Under review", ApplicationStatus.PENDING),
        ("approved", ApplicationStatus.APPROVED),
        ("Denied", ApplicationStatus.DENIED),
        ("Enrollment  Complete", ApplicationStatus.ENROLLMENT_COMPLETE),
        ("waitlisted", None),
    ],
)
def test_status_parse(text, expected):
    assert ApplicationStatus.parse(text) is expected


def test_teachers_cannot_reach_enrollment_complete():
    allowed = ApplicationStatus.allowed_for(ApplicantType.TEACHER)
    assert ApplicationStatus.ENROLLMENT_COMPLETE not in allowed
    assert ApplicationStatus.ENROLLMENT_COMPLETE in ApplicationStatus.allowed_for(
        ApplicantType.STUDENT
    )


def test_visibility_follows_account_link():
    linked = ApplicationRecord(ApplicantType.STUDENT, 2, "Maya", linked_account_id="1001")
    unlinked = ApplicationRecord(ApplicantType.STUDENT, 3, "Jonah")

    owner = Actor(id="1001", label="maya")
    stranger = Actor(id="9999", label="someone")
    staff = Actor(id="5", label="staff", is_staff=True)

    assert linked.visible_to(owner)
    assert linked.visible_to(staff)
    assert not linked.visible_to(stranger)
    assert unlinked.visible_to(stranger)
