"""YAML 프로젝트 파일 로더.

YAML 파일에서 sweep 대상 프로젝트 목록을 로드합니다.

Rules Applied:
    - #11 Pydantic Modeling: frozen=True, field validators
    - #10 Python Standards: Modern typing, Path
"""

from __future__ import annotations

from pathlib import Path

import yaml

from src.models.project import ProjectsFile


def load_projects(path: str | Path) -> ProjectsFile:
    """YAML → ProjectsFile (Pydantic 검증 포함).

    Args:
        path: YAML 프로젝트 파일 경로

    Returns:
        검증된 ProjectsFile 인스턴스

    Raises:
        FileNotFoundError: 파일이 존재하지 않을 경우
        yaml.YAMLError: YAML 파싱 실패
        pydantic.ValidationError: 검증 실패
    """
    file_path = Path(path)
    if not file_path.exists():
        msg = f"Projects file not found: {file_path}"
        raise FileNotFoundError(msg)

    raw = yaml.safe_load(file_path.read_text(encoding="utf-8"))
    return ProjectsFile.model_validate(raw or {})
