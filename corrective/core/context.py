from fastapi import Header, HTTPException, status


def _positive_header(value: int | None, name: str) -> int:
    if value is None or value <= 0:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Cabecera {name} requerida")
    return value


def get_tenant_id(x_tenant_id: int | None = Header(default=None)) -> int:
    return _positive_header(x_tenant_id, "X-Tenant-Id")


def get_user_id(x_user_id: int | None = Header(default=None)) -> int:
    return _positive_header(x_user_id, "X-User-Id")
