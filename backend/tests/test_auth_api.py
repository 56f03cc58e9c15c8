from datetime import timedelta

from crm_auth.database import to_iso, utcnow
from crm_auth.models.activity import ActivityLog
from crm_auth.models.auth import ActionToken, AuthSession, TokenPurpose
from crm_auth.models.user import Role, User

from conftest import USER_PASSWORD, bearer, signin, signup, user_token


def test_signup_then_signin_returns_token_with_stored_role(client, token_service):
    signup_response = signup(client, "a@b.com", "longenough1", "A B")
    assert signup_response.status_code == 201
    body = signup_response.json()
    assert body["success"] is True
    user = body["data"]["user"]
    assert user["email"] == "a@b.com"
    assert user["displayName"] == "A B"
    assert user["role"] == "USER"
    assert user["emailVerified"] is False
    assert "passwordHash" not in user
    first_token = body["data"]["token"]

    signin_response = signin(client, "a@b.com", "longenough1")
    assert signin_response.status_code == 200
    second_token = signin_response.json()["data"]["token"]

    first_claims = token_service.verify(first_token)
    second_claims = token_service.verify(second_token)
    assert first_claims.user_id == second_claims.user_id == user["id"]
    assert second_claims.role is Role.USER


def test_signin_errors_do_not_reveal_unknown_email(client):
    signup(client, "known@example.com")

    wrong_password = signin(client, "known@example.com", "not-the-password")
    unknown_email = signin(client, "nobody@example.com", "not-the-password")

    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()
    assert wrong_password.json()["code"] == "invalid_credentials"


def test_duplicate_signup_is_rejected_and_first_account_unaffected(client):
    assert signup(client, "dup@example.com").status_code == 201

    second = signup(client, "dup@example.com", "another-password")
    assert second.status_code == 409
    assert second.json() == {
        "success": False,
        "error": "User with this email already exists",
        "code": "duplicate_email",
    }
    assert signup(client, "DUP@Example.com").status_code == 409

    assert signin(client, "dup@example.com", USER_PASSWORD).status_code == 200
    assert signin(client, "dup@example.com", "another-password").status_code == 401


def test_signup_rejects_invalid_input(client):
    short_password = signup(client, "short@example.com", "short")
    assert short_password.status_code == 400
    assert short_password.json()["code"] == "invalid_input"
    assert "at least 8 characters" in short_password.json()["error"]

    bad_email = signup(client, "not-an-email")
    assert bad_email.status_code == 400
    assert bad_email.json()["code"] == "invalid_input"

    missing_name = client.post("/api/auth/signup", json={"email": "x@example.com", "password": USER_PASSWORD})
    assert missing_name.status_code == 400


def test_change_password_replaces_credentials(client):
    token = user_token(client, "changer@example.com")

    wrong_current = client.post(
        "/api/auth/change-password",
        json={"currentPassword": "wrong-password", "newPassword": "brand-new-pass"},
        headers=bearer(token),
    )
    assert wrong_current.status_code == 401
    assert wrong_current.json()["code"] == "invalid_credentials"

    too_short = client.post(
        "/api/auth/change-password",
        json={"currentPassword": USER_PASSWORD, "newPassword": "short"},
        headers=bearer(token),
    )
    assert too_short.status_code == 400

    changed = client.post(
        "/api/auth/change-password",
        json={"currentPassword": USER_PASSWORD, "newPassword": "brand-new-pass"},
        headers=bearer(token),
    )
    assert changed.status_code == 200

    assert signin(client, "changer@example.com", USER_PASSWORD).status_code == 401
    assert signin(client, "changer@example.com", "brand-new-pass").status_code == 200


def test_change_password_requires_bearer_token(client):
    response = client.post(
        "/api/auth/change-password",
        json={"currentPassword": USER_PASSWORD, "newPassword": "brand-new-pass"},
    )
    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"


def test_signout_deactivates_sessions_but_token_still_verifies(client, token_service):
    signup(client, "a@b.com", "longenough1", "A B")
    token = signin(client, "a@b.com", "longenough1").json()["data"]["token"]

    sessions = client.get("/api/auth/sessions", headers=bearer(token))
    assert sessions.status_code == 200
    assert len(sessions.json()["data"]["sessions"]) == 1
    assert sessions.json()["data"]["sessions"][0]["isActive"] is True

    signout = client.post("/api/auth/signout", headers=bearer(token))
    assert signout.status_code == 200
    assert signout.json()["data"]["sessionsDeactivated"] == 1

    after = client.get("/api/auth/sessions", headers=bearer(token))
    assert after.status_code == 200
    assert after.json()["data"]["sessions"] == []

    # Stateless check is independent of the ledger
    assert token_service.verify(token).user_id
    assert client.get("/api/auth/me", headers=bearer(token)).status_code == 200

    again = client.post("/api/auth/logout", headers=bearer(token))
    assert again.status_code == 200
    assert again.json()["data"]["sessionsDeactivated"] == 0


def test_signout_requires_token(client):
    response = client.post("/api/auth/signout")
    assert response.status_code == 401


def test_verify_email_consumes_token_once(client, notifier):
    signup(client, "verify@example.com")
    token = notifier.last_token("verify@example.com")

    verified = client.post("/api/auth/verify-email", json={"token": token})
    assert verified.status_code == 200
    assert verified.json()["data"]["user"]["emailVerified"] is True

    replay = client.post("/api/auth/verify-email", json={"token": token})
    assert replay.status_code == 401
    assert replay.json()["code"] == "invalid_or_expired_token"


def test_verify_email_rejects_unknown_token(client):
    response = client.post("/api/auth/verify-email", json={"token": "demo-reset-token"})
    assert response.status_code == 401


def test_password_reset_flow(client, notifier):
    signup(client, "reset@example.com")
    verification_token = notifier.last_token("reset@example.com")

    requested = client.post("/api/auth/request-password-reset", json={"email": "reset@example.com"})
    assert requested.status_code == 200
    reset_token = notifier.last_token("reset@example.com")
    assert reset_token != verification_token

    # Tokens are bound to their purpose
    wrong_purpose = client.post(
        "/api/auth/reset-password",
        json={"token": verification_token, "newPassword": "reset-password-1"},
    )
    assert wrong_purpose.status_code == 401

    reset = client.post(
        "/api/auth/reset-password",
        json={"token": reset_token, "newPassword": "reset-password-1"},
    )
    assert reset.status_code == 200

    assert signin(client, "reset@example.com", USER_PASSWORD).status_code == 401
    assert signin(client, "reset@example.com", "reset-password-1").status_code == 200

    replay = client.post(
        "/api/auth/reset-password",
        json={"token": reset_token, "newPassword": "reset-password-2"},
    )
    assert replay.status_code == 401


def test_newer_reset_request_revokes_older_token(client, notifier):
    signup(client, "twice@example.com")
    client.post("/api/auth/request-password-reset", json={"email": "twice@example.com"})
    first = notifier.last_token("twice@example.com")
    client.post("/api/auth/request-password-reset", json={"email": "twice@example.com"})
    second = notifier.last_token("twice@example.com")

    stale = client.post("/api/auth/reset-password", json={"token": first, "newPassword": "reset-password-1"})
    assert stale.status_code == 401
    fresh = client.post("/api/auth/reset-password", json={"token": second, "newPassword": "reset-password-1"})
    assert fresh.status_code == 200


def test_reset_password_validates_before_consuming_token(client, notifier):
    signup(client, "keep@example.com")
    client.post("/api/auth/request-password-reset", json={"email": "keep@example.com"})
    reset_token = notifier.last_token("keep@example.com")

    too_short = client.post("/api/auth/reset-password", json={"token": reset_token, "newPassword": "short"})
    assert too_short.status_code == 400

    ok = client.post("/api/auth/reset-password", json={"token": reset_token, "newPassword": "long-enough-now"})
    assert ok.status_code == 200


def test_request_reset_for_unknown_email_looks_identical(client, notifier):
    signup(client, "exists@example.com")
    sent_before = len(notifier.outbox)

    known = client.post("/api/auth/request-password-reset", json={"email": "exists@example.com"})
    unknown = client.post("/api/auth/request-password-reset", json={"email": "ghost@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert len(notifier.outbox) == sent_before + 1
    assert notifier.messages_to("ghost@example.com") == []


def test_request_reset_surfaces_mail_failure_as_generic_error(client, notifier):
    signup(client, "relay@example.com")
    notifier.fail = True

    response = client.post("/api/auth/request-password-reset", json={"email": "relay@example.com"})
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error", "code": "server_error"}


def test_mail_failure_does_not_fail_signup_or_signin(client, notifier):
    notifier.fail = True

    assert signup(client, "offline@example.com").status_code == 201
    assert signin(client, "offline@example.com").status_code == 200
    assert notifier.outbox == []


def test_signin_sends_login_alert(client, notifier):
    signup(client, "alert@example.com")
    signin(client, "alert@example.com")

    subjects = [msg["Subject"] for msg in notifier.messages_to("alert@example.com")]
    assert any("Login Alert" in subject for subject in subjects)


def test_signin_survives_missing_session_ledger(client, database):
    signup(client, "noledger@example.com")
    AuthSession.__table__.drop(database.engine)

    response = signin(client, "noledger@example.com")
    assert response.status_code == 200
    token = response.json()["data"]["token"]

    sessions = client.get("/api/auth/sessions", headers=bearer(token))
    assert sessions.status_code == 200
    assert sessions.json()["data"]["sessions"] == []

    signout = client.post("/api/auth/signout", headers=bearer(token))
    assert signout.status_code == 200
    assert signout.json()["data"]["sessionsDeactivated"] == 0


def test_validate_token(client):
    token = user_token(client, "valid@example.com")

    valid = client.post("/api/auth/validate-token", json={"token": token})
    assert valid.status_code == 200
    assert valid.json()["data"]["valid"] is True
    assert valid.json()["data"]["user"]["email"] == "valid@example.com"

    garbage = client.post("/api/auth/validate-token", json={"token": "not-a-token"})
    assert garbage.status_code == 401
    assert garbage.json()["code"] == "malformed_token"


def test_profile_routes(client):
    token = user_token(client, "me@example.com")

    for path in ("/api/auth/me", "/api/auth/profile"):
        response = client.get(path, headers=bearer(token))
        assert response.status_code == 200
        assert response.json()["data"]["user"]["email"] == "me@example.com"

    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_cleanup_sessions_requires_admin(client, admin_headers):
    token = user_token(client, "plain@example.com")

    forbidden = client.post("/api/auth/cleanup-sessions", headers=bearer(token))
    assert forbidden.status_code == 403

    allowed = client.post("/api/auth/cleanup-sessions", headers=admin_headers)
    assert allowed.status_code == 200
    assert allowed.json()["data"] == {"expiredRemoved": 0, "staleRemoved": 0}


def _expire_action_tokens(database, email, purpose):
    with database.session_scope() as db:
        user_id = db.query(User.id).filter(User.email == email).scalar()
        db.query(ActionToken).filter(
            ActionToken.user_id == user_id,
            ActionToken.purpose == purpose.value,
        ).update({"expires_at": to_iso(utcnow() - timedelta(seconds=1))}, synchronize_session=False)


def test_expired_verification_token_is_rejected(client, notifier, database):
    signup(client, "late@example.com")
    token = notifier.last_token("late@example.com")
    _expire_action_tokens(database, "late@example.com", TokenPurpose.VERIFY_EMAIL)

    response = client.post("/api/auth/verify-email", json={"token": token})
    assert response.status_code == 401
    assert response.json()["code"] == "invalid_or_expired_token"

    db = database.session()
    try:
        assert db.query(User.email_verified).filter(User.email == "late@example.com").scalar() is False
    finally:
        db.close()


def test_expired_reset_token_is_rejected(client, notifier, database):
    signup(client, "slow@example.com")
    client.post("/api/auth/request-password-reset", json={"email": "slow@example.com"})
    token = notifier.last_token("slow@example.com")
    _expire_action_tokens(database, "slow@example.com", TokenPurpose.RESET_PASSWORD)

    response = client.post("/api/auth/reset-password", json={"token": token, "newPassword": "reset-password-1"})
    assert response.status_code == 401
    assert response.json()["code"] == "invalid_or_expired_token"

    assert signin(client, "slow@example.com", "reset-password-1").status_code == 401
    assert signin(client, "slow@example.com", USER_PASSWORD).status_code == 200


def test_auth_flow_survives_missing_activity_log(client, database):
    ActivityLog.__table__.drop(database.engine)

    assert signup(client, "nolog@example.com").status_code == 201
    signed_in = signin(client, "nolog@example.com")
    assert signed_in.status_code == 200

    signout = client.post("/api/auth/signout", headers=bearer(signed_in.json()["data"]["token"]))
    assert signout.status_code == 200
    assert signout.json()["data"]["sessionsDeactivated"] == 1


def test_unexpected_notifier_error_does_not_fail_signup_or_signin(client, notifier):
    notifier.crash = True

    assert signup(client, "broken-mail@example.com").status_code == 201
    assert signin(client, "broken-mail@example.com").status_code == 200
