import pytest
import os
import shutil
import subprocess
import tempfile
from pathlib import Path

from sdflisp import make_root_env, read, evaluate, print_expr, GenerateContext

NAGA = shutil.which("naga")
SKIP_WGSL = os.environ.get("SKIP_WGSL", "") == "1"

@pytest.fixture
def env():
    return make_root_env()

@pytest.fixture
def ctx():
    return GenerateContext()

@pytest.fixture
def basic_eval():
    """Evaluates every expression in the source and prints the last result."""
    def _eval(text: str) -> str:
        env = make_root_env()
        result = None
        for expr in read(text):
            result = evaluate(expr, env)
        return print_expr(result)
    return _eval

@pytest.fixture
def examples_dir():
    return Path(__file__).parent.parent / "examples"

@pytest.fixture(scope="session")
def validate_wgsl():
    def _validator(shader: str):
        if not NAGA or SKIP_WGSL:
            pytest.skip("Requires naga.")
        with tempfile.NamedTemporaryFile(suffix=".wgsl", mode="w", delete=False) as f:
            f.write(shader)
            path = f.name
        try:
            result = subprocess.run([NAGA, path], capture_output=True, text=True)
        finally:
            os.unlink(path)
        if result.returncode != 0:
            raise AssertionError(f"WGSL Validation Failed:\n{result.stderr}\nSOURCE:\n{shader}")
    return _validator
