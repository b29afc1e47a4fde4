"""Auth + account lifecycle tests.

Learn: Tests cover:
1. Registration (multipart) + duplicate prevention + role rules
2. Email verification with single-use, expiring codes
3. Login → JWT, refused until verified
4. Forgot/reset password
5. Protected /me endpoint
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from conftest import PASSWORD, auth_headers, fetch, make_user
from tnkr.auth.jwt import create_access_token, verify_token
from tnkr.auth.password import verify_password
from tnkr.db.models import TokenType, User, UserRole, VerificationToken


def registration_form(**overrides) -> dict:
    tag = uuid.uuid4().hex[:8]
    form = {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "username": f"ada-{tag}",
        "email": f"ada-{tag}@example.com",
        "password": "sneakerhead-42",
        "phone": "555-0100",
    }
    form.update(overrides)
    return form


async def token_code(session_factory, email: str, token_type: TokenType) -> str:
    [token] = await fetch(session_factory, VerificationToken, email=email, type=token_type.value)
    return token.code


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_creates_unverified_customer(client, emails, session_factory):
    form = registration_form()
    r = await client.post("/api/v1/auth/register", data=form)

    assert r.status_code == 201
    body = r.json()
    assert body["email"] == form["email"]
    assert body["firstName"] == "Ada"
    assert body["role"] == "CUSTOMER"
    assert body["isVerified"] is False
    assert "password" not in body and "passwordHash" not in body

    [sent] = emails.of_kind("verification")
    assert sent.to == form["email"]
    code = await token_code(session_factory, form["email"], TokenType.EMAIL_VERIFICATION)
    assert code in sent.html


@pytest.mark.asyncio
async def test_register_with_photo_uploads_picture(client, storage):
    r = await client.post(
        "/api/v1/auth/register",
        data=registration_form(),
        files={"photo": ("me.png", b"\x89PNG fake", "image/png")},
    )
    assert r.status_code == 201
    body = r.json()
    assert body["profilePictureUrl"].endswith(f"profile-pictures/{body['id']}.png")
    assert f"profile-pictures/{body['id']}.png" in storage.objects


@pytest.mark.asyncio
async def test_register_rejects_non_image_photo(client):
    r = await client.post(
        "/api/v1/auth/register",
        data=registration_form(),
        files={"photo": ("notes.txt", b"hello", "text/plain")},
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_register_technician_role(client):
    r = await client.post("/api/v1/auth/register", data=registration_form(role="technician"))
    assert r.status_code == 201
    assert r.json()["role"] == "TECHNICIAN"


@pytest.mark.asyncio
async def test_register_cannot_self_assign_admin(client):
    r = await client.post("/api/v1/auth/register", data=registration_form(role="ADMIN"))
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_register_duplicate_email(client):
    form = registration_form()
    assert (await client.post("/api/v1/auth/register", data=form)).status_code == 201

    again = registration_form(email=form["email"])
    r = await client.post("/api/v1/auth/register", data=again)
    assert r.status_code == 409
    assert r.json()["detail"] == "Email already exists"


@pytest.mark.asyncio
async def test_register_duplicate_username(client):
    form = registration_form()
    await client.post("/api/v1/auth/register", data=form)

    r = await client.post(
        "/api/v1/auth/register", data=registration_form(username=form["username"])
    )
    assert r.status_code == 409
    assert r.json()["detail"] == "Username already exists"


@pytest.mark.asyncio
async def test_register_short_password(client):
    r = await client.post("/api/v1/auth/register", data=registration_form(password="abc"))
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_register_missing_field(client):
    form = registration_form()
    del form["firstName"]
    r = await client.post("/api/v1/auth/register", data=form)
    assert r.status_code == 422


# ═══════════════════════════════════════════════════════════
# Email verification
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_verify_email_then_code_is_spent(client, session_factory):
    form = registration_form()
    await client.post("/api/v1/auth/register", data=form)
    code = await token_code(session_factory, form["email"], TokenType.EMAIL_VERIFICATION)

    r = await client.get("/api/v1/auth/verify-email", params={"code": code})
    assert r.status_code == 200

    [user] = await fetch(session_factory, User, email=form["email"])
    assert user.is_verified is True

    again = await client.get("/api/v1/auth/verify-email", params={"code": code})
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_verify_email_expired_code(client, session_factory):
    async with session_factory() as db:
        db.add(
            VerificationToken(
                code="stale",
                email="late@example.com",
                type=TokenType.EMAIL_VERIFICATION.value,
                expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
            )
        )
        await db.commit()

    r = await client.get("/api/v1/auth/verify-email", params={"code": "stale"})
    assert r.status_code == 400
    assert "expired" in r.json()["detail"]


@pytest.mark.asyncio
async def test_resend_verification_replaces_code(client, emails, session_factory):
    form = registration_form()
    await client.post("/api/v1/auth/register", data=form)
    old = await token_code(session_factory, form["email"], TokenType.EMAIL_VERIFICATION)

    r = await client.post("/api/v1/auth/resend-verification", json={"email": form["email"]})
    assert r.status_code == 200

    new = await token_code(session_factory, form["email"], TokenType.EMAIL_VERIFICATION)
    assert new != old
    assert len(emails.of_kind("verification")) == 2


@pytest.mark.asyncio
async def test_resend_verification_unknown_and_verified(client, session_factory):
    r = await client.post("/api/v1/auth/resend-verification", json={"email": "ghost@example.com"})
    assert r.status_code == 404

    user = await make_user(session_factory, verified=True)
    r = await client.post("/api/v1/auth/resend-verification", json={"email": user.email})
    assert r.status_code == 400


# ═══════════════════════════════════════════════════════════
# Login
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_success(client, session_factory):
    user = await make_user(session_factory, UserRole.TECHNICIAN)

    r = await client.post("/api/v1/auth/login", json={"email": user.email, "password": PASSWORD})

    assert r.status_code == 200
    body = r.json()
    assert body["user"] == {
        "id": str(user.id),
        "username": user.username,
        "email": user.email,
        "role": "TECHNICIAN",
    }
    claims = verify_token(body["token"])
    assert claims["sub"] == str(user.id)
    assert claims["role"] == "TECHNICIAN"


@pytest.mark.asyncio
async def test_login_wrong_password(client, session_factory):
    user = await make_user(session_factory)
    r = await client.post("/api/v1/auth/login", json={"email": user.email, "password": "nope-nope"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_login_unknown_email(client):
    r = await client.post(
        "/api/v1/auth/login", json={"email": "nobody@example.com", "password": "whatever1"}
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_login_unverified(client, session_factory):
    user = await make_user(session_factory, verified=False)
    r = await client.post("/api/v1/auth/login", json={"email": user.email, "password": PASSWORD})
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_login_missing_fields(client):
    r = await client.post("/api/v1/auth/login", json={"email": "x@example.com"})
    assert r.status_code == 400


# ═══════════════════════════════════════════════════════════
# Password reset
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_forgot_password_same_reply_either_way(client, emails, session_factory):
    user = await make_user(session_factory)

    known = await client.post("/api/v1/auth/forgot-password", json={"email": user.email})
    unknown = await client.post("/api/v1/auth/forgot-password", json={"email": "x@nowhere.test"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert [m.to for m in emails.of_kind("password_reset")] == [user.email]


@pytest.mark.asyncio
async def test_reset_password_flow(client, session_factory):
    user = await make_user(session_factory)
    await client.post("/api/v1/auth/forgot-password", json={"email": user.email})
    code = await token_code(session_factory, user.email, TokenType.PASSWORD_RESET)

    r = await client.post(
        "/api/v1/auth/reset-password", json={"code": code, "newPassword": "brand-new-pass"}
    )
    assert r.status_code == 200

    [reloaded] = await fetch(session_factory, User, id=user.id)
    assert verify_password("brand-new-pass", reloaded.password_hash)
    assert await fetch(session_factory, VerificationToken, code=code) == []

    login = await client.post(
        "/api/v1/auth/login", json={"email": user.email, "password": "brand-new-pass"}
    )
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_reset_password_bad_code(client):
    r = await client.post(
        "/api/v1/auth/reset-password", json={"code": "nope", "newPassword": "brand-new-pass"}
    )
    assert r.status_code == 400


# ═══════════════════════════════════════════════════════════
# /me
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_me_with_token(client, customer):
    r = await client.get("/api/v1/auth/me", headers=auth_headers(customer))
    assert r.status_code == 200
    assert r.json()["id"] == str(customer.id)


@pytest.mark.asyncio
async def test_me_with_access_token_header(client, customer):
    bearer = auth_headers(customer)["Authorization"].removeprefix("Bearer ")
    r = await client.get("/api/v1/auth/me", headers={"access-token": bearer})
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_me_without_token(client):
    r = await client.get("/api/v1/auth/me")
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_with_garbage_token(client):
    r = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_me_with_expired_token(client, customer):
    token = create_access_token(str(customer.id), customer.role, expires_minutes=-1)
    r = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Token has expired"
