import pytest


def test_health(client):
    """Health check reports the database connection"""
    response = client.get('/api/health')
    assert response.status_code == 200
    assert response.get_json() == {"status": "healthy", "database": "connected"}


def test_security_headers_present(client):
    """Security headers are on every response"""
    resp = client.get('/api/health')
    assert resp.headers.get("X-Frame-Options") == "SAMEORIGIN"
    assert resp.headers.get("X-Content-Type-Options") == "nosniff"
    assert resp.headers.get("Referrer-Policy") == "strict-origin-when-cross-origin"


def test_404_is_json(client):
    """Unknown paths answer with a JSON 404"""
    response = client.get('/non_existent_page')
    assert response.status_code == 404
    assert response.get_json() == {"success": False, "error": "Not Found"}


def test_wrong_method_is_json(client):
    response = client.delete('/api/health')
    assert response.status_code == 405
    assert response.get_json()["success"] is False


def test_init_db_command(flask_app):
    runner = flask_app.test_cli_runner()
    result = runner.invoke(args=["init-db"])
    assert result.exit_code == 0
    assert "Database tables created." in result.output


def test_production_config_accepts_valid_auth():
    from config import ProductionConfig

    cfg = ProductionConfig()
    assert cfg.SESSION_COOKIE_SECURE is True


def test_production_config_refuses_short_secret(monkeypatch):
    from config import Config, ProductionConfig

    monkeypatch.setattr(Config, "AUTH_SECRET", "too-short")
    with pytest.raises(RuntimeError):
        ProductionConfig()
