"""
Programmes API - Catalog of programmes an applicant can choose
"""

from fastapi import APIRouter

from ..schemas.applications import PROGRAMMES, ProgrammeList, ProgrammeOption

router = APIRouter()


@router.get("", response_model=ProgrammeList)
async def list_programmes() -> ProgrammeList:
    """List programme keys and display names, in catalog order"""
    return ProgrammeList(
        programmes=[ProgrammeOption(key=key, name=name) for key, name in PROGRAMMES.items()]
    )
