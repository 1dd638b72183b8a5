from findspot import admin_cli, auth


def test_create_user_prints_credentials(capsys):
    code = admin_cli.main_create_user(["--email", "Boss@Example.com", "--password", "pw", "--admin"])
    out = capsys.readouterr().out

    assert code == 0
    assert out.startswith("USER_CREATED")
    assert "email: boss@example.com" in out
    assert "admin: true" in out
    token = next(line for line in out.splitlines() if line.startswith("access_token: ")).split(": ", 1)[1]
    assert auth.decode_access_token(token).admin is True


def test_create_user_generates_missing_values(capsys, monkeypatch):
    monkeypatch.delenv("ADMIN_EMAIL", raising=False)
    monkeypatch.delenv("ADMIN_PASSWORD", raising=False)
    assert admin_cli.main_create_user([]) == 0
    out = capsys.readouterr().out
    assert "@example.test" in out
    assert "admin: false" in out


def test_set_admin_grants_and_revokes(make_user, client):
    make_user("helper@example.com", password="pw")

    assert admin_cli.main_set_admin(["--email", "helper@example.com"]) == 0
    login = client.post("/auth/login-json", json={"email": "helper@example.com", "password": "pw"})
    assert login.json()["admin"] is True

    assert admin_cli.main_set_admin(["--email", "helper@example.com", "--revoke"]) == 0
    login = client.post("/auth/login-json", json={"email": "helper@example.com", "password": "pw"})
    assert login.json()["admin"] is False


def test_set_admin_unknown_email():
    assert admin_cli.main_set_admin(["--email", "nobody@example.com"]) == 1
