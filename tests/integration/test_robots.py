"""Tests for the crawler policy."""

from fastapi.testclient import TestClient

from backend.app.api.routes.robots import render_robots


def test_robots_body(client: TestClient) -> None:
    response = client.get("/robots.txt")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text == (
        "User-agent: *\n"
        "Allow: /\n"
        "Disallow: /student/\n"
        "Disallow: /teacher/\n"
        "Disallow: /parent/\n"
        "Disallow: /admin/\n"
        "Disallow: /api/\n"
        "Disallow: /messaging/\n"
        "\n"
        "Sitemap: http://lms.example.org/sitemap.xml\n"
    )


def test_robots_is_public_and_unthrottled(client: TestClient) -> None:
    statuses = {client.get("/robots.txt").status_code for _ in range(10)}

    assert statuses == {200}


def test_sitemap_ignores_trailing_slash() -> None:
    assert render_robots("https://school.example.org/").endswith(
        "Sitemap: https://school.example.org/sitemap.xml\n"
    )
