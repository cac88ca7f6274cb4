#!/usr/bin/env python3
"""Cross-platform install script for flowsense-agent.

Usage:
    python install.py          # Runtime install
    python install.py --dev    # Editable install with the test extra
"""

import os
import platform
import shutil
import subprocess
import sys

MIN_PYTHON = (3, 11)
CONFIG_FILES = [("config.example.yaml", "config.yaml"), (".env.example", ".env")]


def _create_venv(venv_dir: str) -> None:
    if os.path.isdir(venv_dir):
        print("Virtual environment already exists.")
        return
    print("Creating virtual environment...")
    subprocess.check_call([sys.executable, "-m", "venv", venv_dir])


def _copy_config_files(project_dir: str) -> None:
    for src, dst in CONFIG_FILES:
        src_path = os.path.join(project_dir, src)
        dst_path = os.path.join(project_dir, dst)
        if os.path.exists(dst_path):
            print(f"{dst} already exists, skipping.")
        elif os.path.exists(src_path):
            shutil.copy(src_path, dst_path)
            print(f"Created {dst} from {src}")


def main() -> None:
    if sys.version_info < MIN_PYTHON:
        sys.exit(
            f"Error: Python {MIN_PYTHON[0]}.{MIN_PYTHON[1]}+ is required. "
            f"You have {sys.version_info.major}.{sys.version_info.minor}."
        )

    dev = "--dev" in sys.argv
    project_dir = os.path.dirname(os.path.abspath(__file__))
    venv_dir = os.path.join(project_dir, ".venv")
    is_windows = platform.system() == "Windows"
    pip = os.path.join(venv_dir, "Scripts" if is_windows else "bin", "pip")

    _create_venv(venv_dir)
    subprocess.check_call([pip, "install", "--upgrade", "pip"])

    target = ".[dev]" if dev else "."
    print(f"Installing flowsense-agent ({'editable, dev' if dev else 'runtime'})...")
    install_args = [pip, "install", "-e", target] if dev else [pip, "install", target]
    subprocess.check_call(install_args, cwd=project_dir)

    os.makedirs(os.path.join(project_dir, "data"), exist_ok=True)
    _copy_config_files(project_dir)

    activate_cmd = r".\.venv\Scripts\activate" if is_windows else "source .venv/bin/activate"
    print()
    print("flowsense-agent installed.")
    print("Next steps:")
    print("  1. Edit .env and set OPENAI_API_KEY (or ANTHROPIC_API_KEY with llm.provider: anthropic)")
    print(f"  2. Activate the virtual environment: {activate_cmd}")
    print("  3. Check the configuration: python -m flowsense_agent config-check")
    print("  4. Chat: python -m flowsense_agent chat --wallet 0x1234567890abcdef")


if __name__ == "__main__":
    main()
