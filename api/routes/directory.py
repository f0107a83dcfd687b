"""Directory lookup endpoint, restricted to educational accounts"""

from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse

from api.models import DirectoryRequest, DirectoryResponse
from services.directory_service import (
    CallerResolutionError,
    DirectoryForbiddenError,
    DirectoryService,
)
from utils.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["directory"])

_directory_service: Optional[DirectoryService] = None


def get_directory_service() -> DirectoryService:
    """Dependency returning the directory service for the configured backend"""
    global _directory_service
    if _directory_service is None:
        from config.app_config import get_config
        config = get_config()
        if config.storage.backend == "supabase":
            from infrastructure.external.supabase_client import get_supabase_client
            from services.directory_service import SupabaseDirectoryRepository
            repository = SupabaseDirectoryRepository(get_supabase_client().get_service_client())
        else:
            from services.directory_service import SQLiteDirectoryRepository
            repository = SQLiteDirectoryRepository(config.storage.sqlite_path)
        _directory_service = DirectoryService(repository)
    return _directory_service


@router.post("/get-directory", response_model=DirectoryResponse)
def get_directory(request: DirectoryRequest,
                  authorization: Optional[str] = Header(default=None),
                  service: DirectoryService = Depends(get_directory_service)):
    """Search the caller's directory contacts by name"""
    try:
        contacts = service.search(authorization, request.query)
    except DirectoryForbiddenError as e:
        return JSONResponse(status_code=403, content={"error": str(e)})
    except CallerResolutionError as e:
        logger.warning(f"Directory request rejected: {e}")
        return JSONResponse(status_code=500, content={"error": str(e)})
    except Exception as e:
        logger.error(f"Error in get-directory function: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(e)})

    return {"contacts": [contact.to_row() for contact in contacts]}
