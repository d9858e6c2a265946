from pathlib import Path

from fastapi.testclient import TestClient


def test_health_check(client: TestClient) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["service"] == "grunge-pallets-ordering"


def test_every_module_names_its_path() -> None:
    root = Path(__file__).resolve().parents[1]
    for module in sorted((root / "app").rglob("*.py")):
        relative = module.relative_to(root).as_posix()
        assert module.read_text().splitlines()[0] == f"# {relative}"
