"""Project identity models.

Rules Applied:
    - #11 Pydantic Modeling: frozen=True
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

SUPPORTED_CHAINS: frozenset[str] = frozenset(
    {"ethereum", "polygon", "base", "arbitrum", "bsc", "optimism"}
)


class ProjectContext(BaseModel):
    """메트릭 계산에 전달되는 프로젝트 식별 정보 (불변).

    호출자(CRUD 레이어)가 권한 검증을 마친 뒤 전달합니다.

    Attributes:
        id: 프로젝트 ID
        contract_address: ERC-20 컨트랙트 주소 (소문자 정규화)
        chain: EVM 체인 이름 (예: "ethereum")
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    contract_address: str = Field(..., pattern=r"^0x[0-9a-fA-F]{40}$")
    chain: str = "ethereum"

    @field_validator("contract_address", "chain", mode="after")
    @classmethod
    def lowercase(cls, v: str) -> str:
        """주소/체인 소문자 정규화."""
        return v.lower()


class ProjectEntry(BaseModel):
    """YAML 프로젝트 파일 항목.

    Example (projects.yaml):
        projects:
          - id: pepe
            contract_address: "0x6982508145454Ce325dDbE47a25d4ec3d2311933"
            chain: ethereum
            is_active: true
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    contract_address: str
    chain: str = "ethereum"
    is_active: bool = True

    def to_context(self) -> ProjectContext:
        """ProjectContext로 변환."""
        return ProjectContext(id=self.id, contract_address=self.contract_address, chain=self.chain)


class ProjectsFile(BaseModel):
    """YAML 최상위 모델."""

    model_config = ConfigDict(frozen=True)

    projects: list[ProjectEntry] = Field(default_factory=list)

    def active(self) -> list[ProjectContext]:
        """활성 프로젝트만 ProjectContext로 반환."""
        return [p.to_context() for p in self.projects if p.is_active]
