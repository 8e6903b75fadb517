import sys
from pathlib import Path

import pytest

# 项目根目录加入 sys.path，测试内直接以顶层包名导入（algo/broker/engine/...）
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def project_root() -> Path:
    """仓库根目录（示例配置位于 `config/` 下）。"""
    return ROOT
