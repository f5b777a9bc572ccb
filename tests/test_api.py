import shutil
import uuid

import pytest
from fastapi.testclient import TestClient

from securescan.ai_agent.providers import AIProvider, LLMResponse
from securescan.ai_agent.remediation import NO_FILE_ERROR, WORKING_COPY_ERROR, RemediationEngine
from securescan.api import database, models, storage
from securescan.api.dependencies import (
    get_orchestrator,
    get_publisher,
    get_remediation_engine,
    get_repository_provider,
)
from securescan.api.main import app
from securescan.api.routers.scans import perform_scan
from securescan.github import PublishError, PullRequest, Repository, RepositoryError
from securescan.orchestrator import ScanOptions, ScanOrchestrator, ScanStage
from securescan.scanners import Finding, Severity
from securescan.session_state import scan_sessions

REPO_URL = "https://github.com/octo/demo"
REPOSITORY = Repository(name="demo", full_name="octo/demo", clone_url="https://github.com/octo/demo.git")


class FakeRepositoryProvider:
    """Resolves every URL to REPOSITORY and clones by copying a local tree."""

    def __init__(self, source, clone_root, resolve_error=None, clone_error=None):
        self.source = source
        self.clone_root = clone_root
        self.resolve_error = resolve_error
        self.clone_error = clone_error
        self.clones = []
        self.cleaned = []

    def resolve(self, url):
        if self.resolve_error:
            raise self.resolve_error
        return REPOSITORY

    def clone(self, repository, target_base_dir):
        if self.clone_error:
            raise self.clone_error
        target = self.clone_root / uuid.uuid4().hex
        shutil.copytree(self.source, target)
        self.clones.append(str(target))
        return str(target)

    def cleanup(self, path):
        self.cleaned.append(path)
        shutil.rmtree(path, ignore_errors=True)


class FakeProvider(AIProvider):
    def __init__(self, reply):
        super().__init__(model="fake")
        self.reply = reply

    async def chat(self, messages):
        return LLMResponse(content=self.reply, model=self.model)


class FakePublisher:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def publish(self, working_copy, repository_url, finding, diff, base_branch, user_name, user_email):
        with open(f"{working_copy}/{finding.file}") as f:
            self.calls.append({"content": f.read(), "diff": diff, "base": base_branch})
        if self.error:
            raise self.error
        return PullRequest(number=12, url="https://api.github.com/repos/octo/demo/pulls/12",
                           html_url="https://github.com/octo/demo/pull/12")


def _finding(title, severity=Severity.HIGH, file="src/app.js", line=2):
    return Finding(severity=severity, title=title, description="desc", source="security-patterns",
                   file=file, line=line)


def _orchestrator(static_scanner, findings):
    scanner = static_scanner(findings=findings)
    return ScanOrchestrator(stages=[
        ScanStage("security_patterns", "Analyzing security patterns...", 60, lambda o: scanner),
    ])


@pytest.fixture(autouse=True)
def clean_database():
    db = database.SessionLocal()
    try:
        db.query(models.Finding).delete()
        db.query(models.Scan).delete()
        db.query(models.ModelConfiguration).delete()
        db.commit()
    finally:
        db.close()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = database.SessionLocal()
    yield session
    session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def repo_provider(working_copy, tmp_path):
    provider = FakeRepositoryProvider(working_copy, tmp_path)
    app.dependency_overrides[get_repository_provider] = lambda: provider
    return provider


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").json()["docs"] == "/docs"


def test_scan_lifecycle(client, repo_provider, static_scanner):
    findings = [_finding("low one", Severity.LOW, line=1), _finding("high one")]
    app.dependency_overrides[get_orchestrator] = lambda: _orchestrator(static_scanner, findings)

    response = client.post("/scans/", json={"repository_url": REPO_URL, "scan_options": {"semgrep": False}})
    assert response.status_code == 200
    created = response.json()
    assert created["repository_name"] == "octo/demo"
    assert created["scan_options"]["semgrep"] is False

    # The background task has run by the time the test client returns
    detail = client.get(f"/scans/{created['id']}").json()
    assert detail["status"] == "completed"
    assert detail["progress"] == 100
    assert detail["summary"] == {"high": 1, "medium": 0, "low": 1}
    assert detail["files_scanned"] == 2
    assert detail["tool_results"] == [
        {"tool": "security_patterns", "status": "ran", "findings": 2, "error": None},
    ]
    assert [f["title"] for f in detail["findings"]] == ["high one", "low one"]
    assert detail["findings"][0]["remediation_status"] == "none"

    progress = client.get(f"/scans/{created['id']}/progress").json()
    assert progress == {"status": "completed", "progress": 100, "current_step": None}
    assert scan_sessions.get(created["id"]) is None
    assert repo_provider.cleaned == repo_provider.clones

    listed = client.get("/scans/").json()
    assert [s["id"] for s in listed] == [created["id"]]


def test_create_scan_rejects_unresolvable_repository(client, working_copy, tmp_path):
    provider = FakeRepositoryProvider(working_copy, tmp_path,
                                      resolve_error=RepositoryError("Repository not found or is private"))
    app.dependency_overrides[get_repository_provider] = lambda: provider
    response = client.post("/scans/", json={"repository_url": REPO_URL})
    assert response.status_code == 400
    assert response.json()["detail"] == "Repository not found or is private"


def test_scan_ids_are_validated(client):
    assert client.get("/scans/not-a-uuid").status_code == 400
    assert client.get(f"/scans/{uuid.uuid4()}").status_code == 404
    assert client.get(f"/scans/{uuid.uuid4()}/progress").status_code == 404


def test_clone_failure_marks_scan_failed(db, working_copy, tmp_path, static_scanner):
    provider = FakeRepositoryProvider(working_copy, tmp_path, clone_error=RepositoryError("Failed to clone repository"))
    scan = storage.create_scan(db, REPO_URL, "octo/demo", ScanOptions().to_dict())
    scan_sessions.create(scan.id)

    perform_scan(scan.id, REPOSITORY, ScanOptions(), provider, _orchestrator(static_scanner, []))

    db.refresh(scan)
    assert scan.status == "failed"
    assert scan.error_message == "Failed to clone repository"


def test_cancel_scan(client, db):
    scan = storage.create_scan(db, REPO_URL, "octo/demo", ScanOptions().to_dict())
    scan_sessions.create(scan.id)

    response = client.post(f"/scans/{scan.id}/cancel")
    assert response.status_code == 200
    assert scan_sessions.is_cancelled(scan.id)
    assert client.get(f"/scans/{scan.id}/progress").json()["status"] == "failed"

    assert client.post(f"/scans/{scan.id}/cancel").status_code == 409
    assert client.post(f"/scans/{uuid.uuid4()}/cancel").status_code == 404
    scan_sessions.delete(scan.id)


def test_late_completion_does_not_overwrite_cancellation(db, working_copy, tmp_path, static_scanner):
    scan = storage.create_scan(db, REPO_URL, "octo/demo", ScanOptions().to_dict())
    scan_sessions.create(scan.id)

    def cancel_mid_scan():
        session = database.SessionLocal()
        try:
            storage.cancel_scan(session, scan.id)
        finally:
            session.close()
        scan_sessions.cancel(scan.id)

    scanner = static_scanner(findings=[_finding("late")], on_scan=cancel_mid_scan)
    orchestrator = ScanOrchestrator(stages=[ScanStage("security_patterns", "patterns", 60, lambda o: scanner)])
    provider = FakeRepositoryProvider(working_copy, tmp_path)

    perform_scan(scan.id, REPOSITORY, ScanOptions(), provider, orchestrator)

    db.refresh(scan)
    assert scan.status == "failed"
    assert scan.error_message == "Scan cancelled"
    assert storage.get_findings(db, scan.id) == []
    assert not scan_sessions.is_cancelled(scan.id)
    assert provider.cleaned == provider.clones


def test_progress_is_monotonic_and_stops_after_terminal(db):
    scan = storage.create_scan(db, REPO_URL, "octo/demo", {})
    assert storage.update_scan_progress(db, scan.id, 50, "Running npm audit...")
    assert storage.update_scan_progress(db, scan.id, 25, "Running ESLint analysis...")
    db.refresh(scan)
    assert scan.progress == 50
    assert storage.finish_scan(db, scan.id, "completed")
    assert not storage.update_scan_progress(db, scan.id, 60, "late")
    assert not storage.finish_scan(db, scan.id, "failed", error_message="late")
    db.refresh(scan)
    assert (scan.status, scan.progress) == ("completed", 100)
    with pytest.raises(ValueError):
        storage.finish_scan(db, scan.id, "scanning")


def test_replace_findings_is_idempotent_per_scan(db):
    scan = storage.create_scan(db, REPO_URL, "octo/demo", {})
    storage.replace_findings(db, scan.id, [_finding("first"), _finding("second")])
    storage.replace_findings(db, scan.id, [_finding("third", Severity.MEDIUM)])
    assert [f.title for f in storage.get_findings(db, scan.id)] == ["third"]


def _create_model(client, **overrides):
    body = {"name": "local", "provider": "ollama", "model_name": "llama3", "is_default": True}
    body.update(overrides)
    response = client.post("/settings/models", json=body)
    assert response.status_code == 200, response.text
    return response.json()


def test_model_configuration_defaults_are_exclusive(client):
    first = _create_model(client)
    second = _create_model(client, name="hosted", provider="openai", model_name="gpt-4o", api_key="sk-secret")
    assert second["has_api_key"] is True
    assert "api_key" not in second

    listed = client.get("/settings/models")
    assert "sk-secret" not in listed.text
    defaults = [c["id"] for c in listed.json() if c["is_default"]]
    assert defaults == [second["id"]]

    client.post(f"/settings/models/{first['id']}/default")
    defaults = [c["id"] for c in client.get("/settings/models").json() if c["is_default"]]
    assert defaults == [first["id"]]

    updated = client.put(f"/settings/models/{second['id']}", json={"is_default": True, "model_name": "gpt-4.1"})
    assert updated.json()["model_name"] == "gpt-4.1"
    defaults = [c["id"] for c in client.get("/settings/models").json() if c["is_default"]]
    assert defaults == [second["id"]]

    assert client.delete(f"/settings/models/{first['id']}").status_code == 200
    assert client.delete(f"/settings/models/{first['id']}").status_code == 404


def test_model_configuration_requires_provider_fields(client):
    response = client.post("/settings/models", json={"name": "x", "provider": "openai", "model_name": "gpt-4o"})
    assert response.status_code == 400
    response = client.post("/settings/models", json={"name": "x", "provider": "custom", "model_name": "m"})
    assert response.status_code == 400
    response = client.post("/settings/models", json={"name": "x", "provider": "bogus", "model_name": "m"})
    assert response.status_code == 422

    local = _create_model(client, is_default=False)
    response = client.put(f"/settings/models/{local['id']}", json={"provider": "anthropic"})
    assert response.status_code == 400


def _stored_finding(db, **kwargs):
    scan = storage.create_scan(db, REPO_URL, "octo/demo", {})
    storage.replace_findings(db, scan.id, [_finding("Use of eval() function", **kwargs)])
    return storage.get_findings(db, scan.id)[0]


def test_remediate_requires_model_configuration(client, db, repo_provider):
    finding = _stored_finding(db)
    response = client.post(f"/findings/{finding.id}/remediate")
    assert response.status_code == 400
    assert client.post(f"/findings/{uuid.uuid4()}/remediate").status_code == 404
    assert client.post("/findings/bad-id/remediate").status_code == 400


def test_remediate_finding_without_file(client, db, repo_provider):
    _create_model(client)
    finding = _stored_finding(db, file=None, line=None)
    body = client.post(f"/findings/{finding.id}/remediate").json()
    assert body["success"] is False
    assert body["error"] == NO_FILE_ERROR
    assert body["finding"]["remediation_status"] == "failed"
    assert repo_provider.clones == []


def test_remediate_and_open_pull_request(client, db, repo_provider):
    _create_model(client)
    engine = RemediationEngine(provider_factory=lambda config, **options: FakeProvider(
        "const x = 1;\nJSON.parse(input);"))
    publisher = FakePublisher()
    app.dependency_overrides[get_remediation_engine] = lambda: engine
    app.dependency_overrides[get_publisher] = lambda: publisher
    finding = _stored_finding(db)

    assert client.post(f"/findings/{finding.id}/pull-request").status_code == 400

    body = client.post(f"/findings/{finding.id}/remediate", json={}).json()
    assert body["success"] is True
    assert "+JSON.parse(input);" in body["diff"]
    assert body["finding"]["remediation_status"] == "success"
    assert body["finding"]["remediated_content"] == "const x = 1;\nJSON.parse(input);\n"
    assert repo_provider.cleaned == repo_provider.clones

    response = client.post(f"/findings/{finding.id}/pull-request")
    assert response.status_code == 200, response.text
    created = response.json()
    assert created["html_url"] == "https://github.com/octo/demo/pull/12"
    assert created["finding"]["pr_number"] == 12
    assert publisher.calls[0]["content"] == "const x = 1;\nJSON.parse(input);\n"
    assert publisher.calls[0]["base"] == "main"

    assert client.post(f"/findings/{finding.id}/pull-request").status_code == 409
    assert client.get(f"/findings/{finding.id}").json()["pr_url"] == created["html_url"]


def test_pull_request_failure_reports_step(client, db, repo_provider):
    _create_model(client)
    app.dependency_overrides[get_remediation_engine] = lambda: RemediationEngine(
        provider_factory=lambda config, **options: FakeProvider("fixed();"))
    app.dependency_overrides[get_publisher] = lambda: FakePublisher(error=PublishError("git push failed", "push"))
    finding = _stored_finding(db)
    client.post(f"/findings/{finding.id}/remediate")

    response = client.post(f"/findings/{finding.id}/pull-request")
    assert response.status_code == 502
    assert response.json()["detail"] == {"message": "Failed to create pull request", "step": "push"}
    assert client.get(f"/findings/{finding.id}").json()["pr_url"] is None


def test_remediate_records_clone_failure(client, db, repo_provider):
    _create_model(client)
    repo_provider.clone_error = RepositoryError("Failed to clone repository")
    finding = _stored_finding(db)

    response = client.post(f"/findings/{finding.id}/remediate")
    assert response.status_code == 502
    assert response.json()["detail"] == "Failed to clone repository"

    stored = client.get(f"/findings/{finding.id}").json()
    assert stored["remediation_status"] == "failed"
    assert stored["remediation_error"] == WORKING_COPY_ERROR
    assert stored["remediated_at"] is not None


def test_pull_request_reports_missing_directory(client, db, repo_provider, working_copy):
    _create_model(client)
    app.dependency_overrides[get_remediation_engine] = lambda: RemediationEngine(
        provider_factory=lambda config, **options: FakeProvider("fixed();"))
    publisher = FakePublisher()
    app.dependency_overrides[get_publisher] = lambda: publisher
    finding = _stored_finding(db)
    assert client.post(f"/findings/{finding.id}/remediate").json()["success"] is True

    # The directory was removed upstream after the fix was generated
    shutil.rmtree(working_copy / "src")
    response = client.post(f"/findings/{finding.id}/pull-request")

    assert response.status_code == 502
    assert response.json()["detail"] == {"message": "Failed to apply fix", "step": "apply"}
    assert publisher.calls == []
    assert repo_provider.cleaned == repo_provider.clones
