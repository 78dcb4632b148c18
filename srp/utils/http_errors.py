from fastapi import HTTPException

from srp.errors import SrpError


def http_error(e: SrpError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)
