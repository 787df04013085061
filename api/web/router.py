"""
Server-rendered pages.

Page controllers call the same services as the JSON API and either render a
template or redirect after a mutation (POST/redirect/GET). Errors raised by
the services are rendered by the handlers in `core.errors`.
"""

from __future__ import annotations

import pydantic
from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from core.db import Database, get_db
from uploads import dependencies as upload_dependencies
from uploads import service as upload_service
from users import schemas as user_schemas
from users import service as user_service

from .templating import templates

router = APIRouter()


def _form_errors(exc: pydantic.ValidationError) -> list[str]:
    messages = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()))
        messages.append(f"{field}: {err.get('msg', 'invalid value')}")
    return messages


def _render_form(
    request: Request,
    *,
    user_id: int | None,
    values: dict,
    form_errors: list[str] | None = None,
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "users/form.html",
        {"user_id": user_id, "values": values, "form_errors": form_errors or []},
        status_code=status_code,
    )


@router.get("/", response_class=HTMLResponse)
async def list_users_page(request: Request, db: Database = Depends(get_db)) -> Response:
    users = await user_service.list_users(db)
    return templates.TemplateResponse(request, "users/list.html", {"users": users})


@router.get("/users/new", response_class=HTMLResponse)
async def new_user_page(request: Request) -> Response:
    return _render_form(request, user_id=None, values={"name": "", "email": ""})


@router.post("/users")
async def create_user_form(
    request: Request,
    name: str = Form(default=""),
    email: str = Form(default=""),
    db: Database = Depends(get_db),
) -> Response:
    values = {"name": name, "email": email}
    try:
        payload = user_schemas.UserCreate(name=name, email=email.strip() or None)
    except pydantic.ValidationError as exc:
        return _render_form(
            request,
            user_id=None,
            values=values,
            form_errors=_form_errors(exc),
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    user = await user_service.create_user(db, payload)
    return RedirectResponse(f"/users/{user.id}", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/users/{user_id}", response_class=HTMLResponse)
async def user_detail_page(user_id: int, request: Request, db: Database = Depends(get_db)) -> Response:
    user = await user_service.get_user(db, user_id)
    return templates.TemplateResponse(request, "users/detail.html", {"user": user})


@router.get("/users/{user_id}/edit", response_class=HTMLResponse)
async def edit_user_page(user_id: int, request: Request, db: Database = Depends(get_db)) -> Response:
    user = await user_service.get_user(db, user_id)
    return _render_form(request, user_id=user.id, values={"name": user.name, "email": user.email or ""})


@router.post("/users/{user_id}/update")
async def update_user_form(
    user_id: int,
    request: Request,
    name: str = Form(default=""),
    email: str = Form(default=""),
    db: Database = Depends(get_db),
) -> Response:
    values = {"name": name, "email": email}
    try:
        # An empty email field clears the column.
        payload = user_schemas.UserUpdate(name=name, email=email.strip() or None)
    except pydantic.ValidationError as exc:
        return _render_form(
            request,
            user_id=user_id,
            values=values,
            form_errors=_form_errors(exc),
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    await user_service.update_user(db, user_id, payload)
    return RedirectResponse(f"/users/{user_id}", status_code=status.HTTP_303_SEE_OTHER)


@router.post("/users/{user_id}/delete")
async def delete_user_form(user_id: int, db: Database = Depends(get_db)) -> Response:
    await user_service.delete_user(db, user_id)
    return RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/upload", response_class=HTMLResponse)
async def upload_page(request: Request) -> Response:
    settings = request.app.state.settings
    return templates.TemplateResponse(
        request,
        "upload.html",
        {
            "max_upload_bytes": settings.max_upload_bytes,
            "max_upload_files": settings.max_upload_files,
            "allowed_extensions": sorted(upload_service.ALLOWED_EXTENSIONS),
        },
    )


@router.post("/upload", response_class=HTMLResponse)
async def upload_single_form(
    request: Request,
    stored: upload_service.StoredFile = Depends(upload_dependencies.single_image),
) -> Response:
    return templates.TemplateResponse(
        request,
        "upload_result.html",
        {"files": [stored]},
        status_code=status.HTTP_201_CREATED,
    )


@router.post("/upload/multiple", response_class=HTMLResponse)
async def upload_multiple_form(
    request: Request,
    stored: list[upload_service.StoredFile] = Depends(upload_dependencies.multiple_images),
) -> Response:
    return templates.TemplateResponse(
        request,
        "upload_result.html",
        {"files": stored},
        status_code=status.HTTP_201_CREATED,
    )
