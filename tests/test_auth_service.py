import pytest
from jose import jwt

from app.config import settings
from app.services.auth_service import (
    InvalidToken,
    TokenAuthenticator,
    UserNotFound,
    create_access_token,
)
from app.services.user_service import UserService


@pytest.fixture
def authenticator(session_factory, cache):
    return TokenAuthenticator(UserService(session_factory, cache))


def test_valid_token_resolves_identity(authenticator, make_user, token_for):
    user = make_user("Grace", role="teacher")

    identity = authenticator.authenticate(token_for(user))

    assert identity.user_id == user.id
    assert identity.name == "Grace"
    assert identity.role == "teacher"
    assert identity.to_public() == {"id": user.id, "name": "Grace", "role": "teacher"}


def test_sub_claim_is_accepted(authenticator, make_user):
    user = make_user("Ada")
    token = jwt.encode({"sub": user.id}, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    assert authenticator.authenticate(token).user_id == user.id


def test_empty_token(authenticator):
    with pytest.raises(InvalidToken):
        authenticator.authenticate("")


def test_garbage_token(authenticator):
    with pytest.raises(InvalidToken) as exc:
        authenticator.authenticate("not.a.jwt")

    assert exc.value.expired is False


def test_expired_token_is_flagged(authenticator, make_user):
    user = make_user("Ada")

    with pytest.raises(InvalidToken) as exc:
        authenticator.authenticate(create_access_token(user.id, expires_minutes=-1))

    assert exc.value.expired is True


def test_token_without_subject(authenticator):
    token = jwt.encode({"role": "admin"}, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    with pytest.raises(InvalidToken):
        authenticator.authenticate(token)


def test_deleted_user(authenticator):
    with pytest.raises(UserNotFound):
        authenticator.authenticate(create_access_token("deleted-user"))


def test_unapproved_teacher_is_rejected(authenticator, make_user, token_for):
    user = make_user("Pending", role="teacher", approved=False)

    with pytest.raises(InvalidToken):
        authenticator.authenticate(token_for(user))


def test_extra_claims_are_carried(make_user):
    token = create_access_token("u1", extra={"role": "student"})

    claims = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])

    assert claims["userId"] == "u1"
    assert claims["role"] == "student"
    assert claims["exp"] > claims["iat"]
