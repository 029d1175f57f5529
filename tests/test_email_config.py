import pytest

from camphub.core.crypto import encrypt_str, decrypt_str, encrypt_json, decrypt_json
from camphub.services import email_service
from camphub.services.email_templates import waitlist_offer


class DummySMTP:
    instances = []

    def __init__(self, host, port):
        self.host = host
        self.port = port
        self.started_tls = False
        self.logged_in = False
        self.sent = []
        DummySMTP.instances.append(self)
    def starttls(self):
        self.started_tls = True
    def login(self, username, password):
        self.logged_in = (username, password)
    def sendmail(self, from_addr, to_addrs, msg):
        self.sent.append((from_addr, tuple(to_addrs), msg))
    def __enter__(self):
        return self
    def __exit__(self, exc_type, exc, tb):
        return False


class DummySMTP_SSL(DummySMTP):
    pass


class FailingSMTP(DummySMTP):
    def login(self, username, password):
        raise OSError("connection reset")


@pytest.fixture(autouse=True)
def reset_instances():
    DummySMTP.instances = []


def test_crypto_roundtrip():
    token = encrypt_str("hello")
    assert token != "hello"
    assert decrypt_str(token) == "hello"
    enc = encrypt_json({"username": "u", "password": "p"})
    assert decrypt_json(enc) == {"username": "u", "password": "p"}
    assert decrypt_json("") == {}


ACCOUNT = email_service.SmtpAccount(
    host="smtp.example.com",
    port=587,
    username="user",
    password="pass",
    from_email="from@example.com",
    from_name="From Name",
)


def test_send_smtp_starttls(monkeypatch):
    monkeypatch.setattr(email_service.smtplib, "SMTP", DummySMTP)
    ok = email_service._send_smtp(ACCOUNT, to_email="to@example.com", subject="Subj", body="Body")
    assert ok is True
    server = DummySMTP.instances[0]
    assert server.started_tls is True
    assert server.logged_in == ("user", "pass")
    assert server.sent[0][1] == ("to@example.com",)
    assert "From Name <from@example.com>" in server.sent[0][2]


def test_send_smtp_ssl(monkeypatch):
    monkeypatch.setattr(email_service.smtplib, "SMTP_SSL", DummySMTP_SSL)
    account = ACCOUNT._replace(port=465, security="ssl")
    ok = email_service._send_smtp(account, to_email="to@example.com", subject="Subj", body="<b>Body</b>", html=True)
    assert ok is True
    server = DummySMTP.instances[0]
    assert isinstance(server, DummySMTP_SSL)
    assert server.started_tls is False


def test_send_smtp_failure_returns_false(monkeypatch):
    monkeypatch.setattr(email_service.smtplib, "SMTP", FailingSMTP)
    ok = email_service._send_smtp(ACCOUNT._replace(from_name=None), to_email="to@example.com", subject="Subj", body="Body")
    assert ok is False


@pytest.mark.asyncio
async def test_tenant_account_needs_credentials(tenant):
    tenant.smtp_config = {"provider": "outlook"}
    tenant.smtp_credentials_encrypted = None
    assert email_service.tenant_account(tenant) is None

    tenant.smtp_credentials_encrypted = encrypt_json({"username": "acme@outlook.com", "password": "pw"})
    account = email_service.tenant_account(tenant)
    assert account.host == "smtp.office365.com"
    assert account.from_email == "acme@outlook.com"
    assert account.from_name == "Acme Camps"


def test_send_email_without_smtp_is_noop(monkeypatch):
    monkeypatch.setattr(email_service.settings, "SMTP_HOST", None)
    monkeypatch.setattr(email_service.smtplib, "SMTP", DummySMTP)
    assert email_service.send_email("to@example.com", "Hi", "Body") is True
    assert DummySMTP.instances == []


@pytest.mark.asyncio
async def test_tenant_smtp_account_is_used(db, tenant, monkeypatch):
    monkeypatch.setattr(email_service.smtplib, "SMTP", DummySMTP)
    tenant.smtp_config = {"provider": "gmail", "from_email": "camps@acme-camps.com"}
    tenant.smtp_credentials_encrypted = encrypt_json({"username": "acme", "password": "pw"})
    await db.commit()

    ok = await email_service.send_email_for_tenant(
        db, tenant_id=tenant.id, to_email="parent@example.com", subject="Hello", body="<p>Hi</p>"
    )
    assert ok is True
    server = DummySMTP.instances[0]
    assert server.host == "smtp.gmail.com"
    assert server.port == 587
    assert server.logged_in == ("acme", "pw")
    assert server.sent[0][0] == "camps@acme-camps.com"
    assert "Acme Camps" in server.sent[0][2]


@pytest.mark.asyncio
async def test_notify_swallows_send_errors(db, monkeypatch):
    async def boom(*args, **kwargs):
        raise RuntimeError("smtp down")

    monkeypatch.setattr(email_service, "send_email_for_tenant", boom)
    template = waitlist_offer(
        parent_name="Pat", camper_name="Kid", camp_name="Camp", offer_url="http://x/offer/t", expires_at="soon"
    )
    assert await email_service.notify(db, tenant_id=None, to_email="p@example.com", template=template) is False
    assert await email_service.notify(db, tenant_id=None, to_email=None, template=template) is False
