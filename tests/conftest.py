from pathlib import Path

import pytest

ROOT_HELP = """Usage: and-cli [options] [command]

Options:
  -V, --version   output the version number
  -h, --help      display help for command

Commands:
  deploy          Deploy various application types
  help [command]  display help for command
"""

DEPLOY_HELP = """Usage: and-cli deploy [options] [command]

Deploy various application types

Options:
  -h, --help      display help for command

Commands:
  aws-s3          Publish build artifacts to Amazon S3 storage
  azure-web-app   Publish build artifacts to Azure Web App
  help [command]  display help for command
"""

AWS_S3_HELP = """Usage: and-cli deploy aws-s3 [options]

Options:
  --destination <destination>  Required container/bucket folder path
  --profile <profile>          Required AWS profile
  -h, --help                   display help for command
"""

AZURE_WEB_APP_HELP = """Usage: and-cli deploy azure-web-app [options]

Options:
  --app-name <applicationName>  Required name of the Azure Web App
  --force                       Optional flag to force push to the git remote
  -h, --help                    display help for command
"""


@pytest.fixture()
def and_cli_help() -> dict[str | None, str]:
    """Help output of a two-level CLI, keyed by command path."""
    return {
        None: ROOT_HELP,
        "deploy": DEPLOY_HELP,
        "deploy aws-s3": AWS_S3_HELP,
        "deploy azure-web-app": AZURE_WEB_APP_HELP,
    }


@pytest.fixture(autouse=True)
def cmdtree_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path / "cmdtree-home"
    monkeypatch.setenv("CMDTREE_HOME", str(home))
    monkeypatch.delenv("NO_COLOR", raising=False)
    for key in ("INDENT", "PREFIX", "USE_COLOR", "INCLUDE_HELP", "MAX_DEPTH", "VERBOSE"):
        monkeypatch.delenv(f"CMDTREE_{key}", raising=False)
    return home
