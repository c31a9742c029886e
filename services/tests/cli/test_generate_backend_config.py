"""Tests for the Terraform backend config file generator."""

import stat
from pathlib import Path

import pytest

from configmap_backend.cli.generate_backend_config import (
    GeneratorSettings,
    generate,
    main,
    render_backend_config,
)


class TestRender:
    def test_contents(self) -> None:
        assert render_backend_config("https://tf-backend.infra.svc:8443/infra/prod", "tok") == (
            'address = "https://tf-backend.infra.svc:8443/infra/prod"\n'
            'username = "terraform"\n'
            'password = "tok"\n'
            'skip_cert_verification = "true"\n'
        )


class TestGenerate:
    def test_writes_read_only_file(self, tmp_path: Path) -> None:
        token_file = tmp_path / "token"
        token_file.write_text("sa-token\n")
        output = tmp_path / "backend.tfvars"

        generate(
            GeneratorSettings(
                output_file=str(output),
                http_backend_address=" https://backend:8443/infra/prod ",
                token_file=str(token_file),
            )
        )

        assert 'password = "sa-token"\n' in output.read_text()
        assert 'address = "https://backend:8443/infra/prod"\n' in output.read_text()
        assert stat.S_IMODE(output.stat().st_mode) == 0o444

    def test_regenerates_over_existing_file(self, tmp_path: Path) -> None:
        token_file = tmp_path / "token"
        token_file.write_text("first")
        output = tmp_path / "backend.tfvars"
        settings = GeneratorSettings(
            output_file=str(output),
            http_backend_address="https://backend/infra/prod",
            token_file=str(token_file),
        )
        generate(settings)

        token_file.write_text("second")
        generate(settings)

        assert 'password = "second"' in output.read_text()

    def test_missing_token_raises(self, tmp_path: Path) -> None:
        with pytest.raises(OSError):
            generate(
                GeneratorSettings(
                    output_file=str(tmp_path / "out"),
                    http_backend_address="https://backend/infra/prod",
                    token_file=str(tmp_path / "missing"),
                )
            )


class TestMain:
    def test_exits_without_output_file(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CONFIGMAP_BACKEND_GENERATOR_OUTPUT_FILE", raising=False)
        monkeypatch.setenv("CONFIGMAP_BACKEND_GENERATOR_HTTP_BACKEND_ADDRESS", "https://b/x/y")

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1

    def test_exits_when_token_unreadable(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setenv("CONFIGMAP_BACKEND_GENERATOR_OUTPUT_FILE", str(tmp_path / "out"))
        monkeypatch.setenv("CONFIGMAP_BACKEND_GENERATOR_HTTP_BACKEND_ADDRESS", "https://b/x/y")
        monkeypatch.setenv("CONFIGMAP_BACKEND_GENERATOR_TOKEN_FILE", str(tmp_path / "missing"))

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1

    def test_success(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        token_file = tmp_path / "token"
        token_file.write_text("sa-token")
        monkeypatch.setenv("CONFIGMAP_BACKEND_GENERATOR_OUTPUT_FILE", str(tmp_path / "out"))
        monkeypatch.setenv("CONFIGMAP_BACKEND_GENERATOR_HTTP_BACKEND_ADDRESS", "https://b/x/y")
        monkeypatch.setenv("CONFIGMAP_BACKEND_GENERATOR_TOKEN_FILE", str(token_file))

        main()

        assert (tmp_path / "out").exists()
