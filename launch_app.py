from __future__ import annotations

import argparse
import hashlib
import os
import subprocess
import sys
import venv
from pathlib import Path
from typing import List, Optional


PROJECT_ROOT = Path(__file__).resolve().parent
APP_DIR = PROJECT_ROOT / "app"
VENV_DIR = PROJECT_ROOT / ".venv"
REQUIREMENTS_FILE = APP_DIR / "requirements.txt"
REQUIREMENTS_MARKER = VENV_DIR / ".requirements.applied"
API_MODULE = APP_DIR / "api.py"


def venv_python() -> Path:
    if os.name == "nt":
        return VENV_DIR / "Scripts" / "python.exe"
    return VENV_DIR / "bin" / "python"


def ensure_virtualenv() -> None:
    if VENV_DIR.exists() and venv_python().exists():
        return
    print(f"[launcher] Creating virtual environment at {VENV_DIR}...")
    venv.EnvBuilder(with_pip=True, upgrade=False, clear=False).create(VENV_DIR)


def requirements_signature() -> str:
    if not REQUIREMENTS_FILE.exists():
        raise FileNotFoundError(f"Requirements file not found: {REQUIREMENTS_FILE}")
    return hashlib.sha256(REQUIREMENTS_FILE.read_bytes()).hexdigest()


def ensure_requirements() -> None:
    signature = requirements_signature()
    if REQUIREMENTS_MARKER.exists() and REQUIREMENTS_MARKER.read_text().strip() == signature:
        print("[launcher] Dependencies satisfied.")
        return
    print(f"[launcher] Installing dependencies from {REQUIREMENTS_FILE}...")
    subprocess.check_call([str(venv_python()), "-m", "pip", "install", "--upgrade", "pip"])
    subprocess.check_call([str(venv_python()), "-m", "pip", "install", "-r", str(REQUIREMENTS_FILE)])
    REQUIREMENTS_MARKER.write_text(signature)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the Prep Console API from a local virtualenv.")
    parser.add_argument("--host", default=os.environ.get("PREP_CONSOLE_HOST", "127.0.0.1"))
    parser.add_argument("--port", default=os.environ.get("PREP_CONSOLE_PORT", "8000"))
    parser.add_argument("--reload", action="store_true", help="Restart the server when app/ changes.")
    return parser.parse_args(argv)


def launch_app(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    ensure_virtualenv()
    ensure_requirements()
    if not API_MODULE.exists():
        raise FileNotFoundError(f"API module not found: {API_MODULE}")

    command = [str(venv_python()), "-m", "uvicorn", "api:app", "--host", args.host, "--port", str(args.port)]
    if args.reload:
        command.append("--reload")
    print(f"[launcher] Serving Prep Console API on http://{args.host}:{args.port} ...")
    return subprocess.call(command, cwd=str(APP_DIR))


if __name__ == "__main__":
    try:
        exit_code = launch_app()
    except subprocess.CalledProcessError as exc:
        print(f"[launcher] Command failed with exit code {exc.returncode}", file=sys.stderr)
        sys.exit(exc.returncode)
    except Exception as exc:  # noqa: BLE001
        print(f"[launcher] {exc}", file=sys.stderr)
        sys.exit(1)
    else:
        sys.exit(exit_code)
