from datetime import timedelta

from sqlmodel import Session, select

from quicknote.core.config import settings
from quicknote.core.csrf import CSRF_HEADER
from quicknote.models import Account, TokenPurpose, UserToken

COOKIE = settings.session_cookie_name


def _sign_up(client, mailer, email="alice@example.com", password="secret1") -> str:
    response = client.post("/users/signup", data={"email": email, "password": password}, follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/users/signup-success"
    return mailer.last_token()


def _sign_in(client, email="alice@example.com", password="secret1"):
    return client.post("/users/signin", data={"email": email, "password": password}, follow_redirects=False)


def _active_account(client, mailer, email="alice@example.com", password="secret1"):
    token = _sign_up(client, mailer, email, password)
    assert client.get(f"/users/confirm/{token}").status_code == 200


def _with_cookie(client, path, session_id):
    """GET with an explicit session identifier instead of the stored cookie"""
    client.cookies.clear()
    return client.get(path, headers={"Cookie": f"{COOKIE}={session_id}"}, follow_redirects=False)


def test_sign_up_confirm_and_sign_in(client, mailer, db_session: Session):
    token = _sign_up(client, mailer)
    assert mailer.sent[-1]["to"] == ["alice@example.com"]

    before = _sign_in(client)
    assert before.status_code == 403
    assert "your account is not active" in before.text
    assert "Send it again" in before.text

    confirmed = client.get(f"/users/confirm/{token}")
    assert confirmed.status_code == 200
    assert "your registration was successfully confirmed" in confirmed.text

    account = db_session.exec(select(Account).where(Account.email == "alice@example.com")).one()
    assert account.active is True

    after = _sign_in(client)
    assert after.status_code == 303
    assert after.headers["location"] == "/notes"
    assert client.cookies.get(COOKIE)
    assert client.get("/notes").status_code == 200

    again = client.get(f"/users/confirm/{token}")
    assert again.status_code == 409


def test_duplicate_sign_up_shows_field_error(client, mailer, db_session: Session):
    _sign_up(client, mailer)

    response = client.post("/users/signup", data={"email": "Alice@example.com", "password": "another1"})

    assert response.status_code == 409
    assert "email not available" in response.text
    assert len(db_session.exec(select(Account)).all()) == 1


def test_sign_up_validation_errors(client, mailer):
    response = client.post("/users/signup", data={"email": "nope", "password": "123"})

    assert response.status_code == 422
    assert "invalid email" in response.text
    assert "must have between 6 and 20 characters" in response.text
    assert mailer.sent == []


def test_sign_in_with_wrong_password(client, mailer):
    _active_account(client, mailer)

    response = _sign_in(client, password="wrong-password")

    assert response.status_code == 401
    assert "invalid credentials" in response.text
    assert client.get("/notes", follow_redirects=False).status_code == 302


def test_protected_routes_redirect_anonymous(client):
    for path in ("/notes", "/notes/create", "/users/signout"):
        response = client.get(path, follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/users/signin"


def test_sign_in_replaces_planted_session_identifier(client, mailer):
    _active_account(client, mailer)
    client.cookies.clear()
    token = client.csrf_token()
    planted = client.cookies.get(COOKIE)
    assert planted

    response = client.post(
        "/users/signin",
        data={"email": "alice@example.com", "password": "secret1"},
        headers={CSRF_HEADER: token},
        follow_redirects=False,
    )

    assert response.status_code == 303
    assert response.cookies.get(COOKIE) not in (None, planted)
    assert _with_cookie(client, "/notes", planted).status_code == 302


def test_post_without_form_token_is_rejected(client, mailer, db_session: Session):
    response = client.request(
        "POST",
        "/users/signup",
        data={"email": "alice@example.com", "password": "secret1"},
        csrf=False,
    )

    assert response.status_code == 403
    assert "please reload the page and try again" in response.text
    assert db_session.exec(select(Account)).all() == []
    assert mailer.sent == []


def test_form_token_is_accepted_from_the_form_field(client, mailer):
    page = client.get("/users/signup")
    token = page.text.split('name="csrf_token" value="', 1)[1].split('"', 1)[0]

    response = client.request(
        "POST",
        "/users/signup",
        data={"email": "alice@example.com", "password": "secret1", "csrf_token": token},
        csrf=False,
        follow_redirects=False,
    )

    assert response.status_code == 303
    assert mailer.sent[-1]["to"] == ["alice@example.com"]


def test_form_token_of_another_session_is_rejected(client, mailer):
    foreign = client.csrf_token()
    client.cookies.clear()
    client.csrf_token()

    for token in (foreign, "forged-token"):
        response = client.post(
            "/users/signup",
            data={"email": "alice@example.com", "password": "secret1"},
            headers={CSRF_HEADER: token},
        )
        assert response.status_code == 403
    assert mailer.sent == []


def test_sign_out_invalidates_session(client, mailer):
    _active_account(client, mailer)
    _sign_in(client)
    old_cookie = client.cookies.get(COOKIE)

    response = client.get("/users/signout", follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/users/signin"

    assert _with_cookie(client, "/notes", old_cookie).status_code == 302


def test_forgot_and_reset_password(client, mailer):
    _active_account(client, mailer)
    _sign_in(client)
    signed_in_cookie = client.cookies.get(COOKIE)

    forgot = client.post("/users/forgot-password", data={"email": "alice@example.com"}, follow_redirects=False)
    assert forgot.status_code == 303
    assert "Almost there, check your email to reset your password" in client.get("/users/signin").text
    assert mailer.sent[-1]["subject"] == "Reset your password"
    token = mailer.last_token()

    page = client.get(f"/users/reset-password/{token}")
    assert page.status_code == 200
    assert f'value="{token}"' in page.text

    mismatch = client.post(
        "/users/reset-password",
        data={"token": token, "new_password": "newpass1", "password_confirm": "newpass2"},
    )
    assert mismatch.status_code == 422
    assert "passwords do not match" in mismatch.text

    reset = client.post(
        "/users/reset-password",
        data={"token": token, "new_password": "newpass1", "password_confirm": "newpass1"},
        follow_redirects=False,
    )
    assert reset.status_code == 303
    assert reset.headers["location"] == "/users/signin"
    assert mailer.sent[-1]["subject"] == "Password changed"

    assert _with_cookie(client, "/notes", signed_in_cookie).status_code == 302

    assert _sign_in(client).status_code == 401
    assert _sign_in(client, password="newpass1").status_code == 303

    reused = client.post(
        "/users/reset-password",
        data={"token": token, "new_password": "another1", "password_confirm": "another1"},
    )
    assert reused.status_code == 400


def test_expired_reset_link_sends_back_to_forgot_form(client, mailer, db_session: Session):
    _active_account(client, mailer)
    client.post("/users/forgot-password", data={"email": "alice@example.com"})
    token = mailer.last_token()

    record = db_session.exec(select(UserToken).where(UserToken.purpose == TokenPurpose.PASSWORD_RESET)).one()
    record.created_at = record.created_at - timedelta(hours=1)
    db_session.add(record)
    db_session.commit()

    page = client.get(f"/users/reset-password/{token}", follow_redirects=False)
    assert page.status_code == 303
    assert page.headers["location"] == "/users/email-form?sub=forgot-password"

    submitted = client.post(
        "/users/reset-password",
        data={"token": token, "new_password": "newpass1", "password_confirm": "newpass1"},
    )
    assert submitted.status_code == 200
    assert "your token has expired, please try again" in submitted.text
    assert "Forgot password" in submitted.text

    assert _sign_in(client).status_code == 303


def test_resend_token_replaces_confirmation_link(client, mailer):
    first = _sign_up(client, mailer)

    response = client.post("/users/resend-token", data={"email": "alice@example.com"}, follow_redirects=False)
    assert response.status_code == 303
    assert response.headers["location"] == "/users/signup-success"
    assert "your token was successfully sent" in client.get("/users/signup-success").text
    second = mailer.last_token()

    assert client.get(f"/users/confirm/{first}").status_code == 400
    assert client.get(f"/users/confirm/{second}").status_code == 200


def test_resend_token_unknown_email(client):
    response = client.post("/users/resend-token", data={"email": "ghost@example.com"})

    assert response.status_code == 422
    assert "invalid email" in response.text


def test_email_form_pages(client):
    assert "Forgot password" in client.get("/users/email-form?sub=forgot-password").text
    assert "/users/resend-token" in client.get("/users/email-form?sub=resend-token").text
    assert client.get("/users/email-form?sub=other").status_code == 400


def test_unknown_confirmation_link(client):
    response = client.get("/users/confirm/not-a-real-token")

    assert response.status_code == 400
    assert "invalid confirmation link" in response.text


def test_mail_failure_renders_generic_error(client, mailer):
    from quicknote.services.email_service import MailDeliveryError

    mailer.fail_with = MailDeliveryError("smtp down")

    response = client.post("/users/signup", data={"email": "alice@example.com", "password": "secret1"})

    assert response.status_code == 500
    assert "failed to send confirmation email, please try again later" in response.text


def test_health_and_request_id(client):
    response = client.get("/health", headers={"X-Request-ID": "abc-123"})

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Request-ID"] == "abc-123"
    assert client.get("/").headers["X-Request-ID"]
