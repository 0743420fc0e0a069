"""
OAuth2 endpoints using Starlette.

Implements:
- Authorization Server Metadata (RFC 8414)
- Authorization endpoint and consent decision endpoints
- Token endpoint (RFC 6749 Section 3.2)
- Token revocation (RFC 7009)
- Token introspection (RFC 7662)
- Client management for client owners
"""

import base64
import binascii
from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote_plus

from jinja2 import Environment, FileSystemLoader, select_autoescape
from pydantic import BaseModel, ValidationError
from starlette.datastructures import FormData
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from oauth_core.core.constants import ERROR_DESCRIPTIONS, INVALID_REQUEST, SERVER_ERROR
from oauth_core.core.context import RequestContext
from oauth_core.core.exceptions import (
    AuthenticationError,
    InsufficientScopeError,
    OAuthError,
    oauth_error,
)
from oauth_core.core.logging import logger

from .clients import to_client_info
from .guards import Principal
from .models import ClientCredentials
from .oauth2_server import build_redirect_url

if TYPE_CHECKING:
    from oauth_core.core.context import AppContext

# Initialize Jinja2 templates
template_dir = Path(__file__).parent / "templates"
jinja_env = Environment(
    loader=FileSystemLoader(str(template_dir)),
    autoescape=select_autoescape(["html"]),
)

NO_STORE_HEADERS = {"Cache-Control": "no-store", "Pragma": "no-cache"}


# Pydantic models for request validation
class ClientCreateRequest(BaseModel):
    """Client registration request."""

    name: str
    redirect_uris: list[str]
    allowed_scopes: list[str]
    allowed_grant_types: list[str] | None = None
    is_confidential: bool = True
    description: str | None = None
    access_token_lifetime: int | None = None
    refresh_token_lifetime: int | None = None


class ClientUpdateRequest(BaseModel):
    """Client update request. Omitted fields are left unchanged."""

    name: str | None = None
    description: str | None = None
    redirect_uris: list[str] | None = None
    allowed_scopes: list[str] | None = None
    is_active: bool | None = None


class ConsentDecisionRequest(BaseModel):
    """Body of the approve/deny endpoints."""

    client_id: str
    redirect_uri: str
    scope: str | None = None
    state: str | None = None
    code_challenge: str | None = None
    code_challenge_method: str | None = None


# Helper function to render Jinja2 templates
def render_template(template_name: str, context: dict, status_code: int = 200) -> HTMLResponse:
    """Render Jinja2 template."""
    template = jinja_env.get_template(template_name)
    html_content = template.render(**context)
    return HTMLResponse(content=html_content, status_code=status_code)


def oauth_error_response(error: OAuthError, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(error.to_dict(), status_code=error.status_code, headers=headers)


def server_error_response(exc: Exception, headers: dict[str, str] | None = None) -> JSONResponse:
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return oauth_error_response(oauth_error(SERVER_ERROR, status_code=500), headers)


def auth_error_response(error: AuthenticationError) -> JSONResponse:
    """401/403 response of a failed guard check (RFC 6750 Section 3)."""
    if isinstance(error, InsufficientScopeError):
        scope = " ".join(sorted(error.required))
        return JSONResponse(
            {"error": "insufficient_scope", "error_description": error.message},
            status_code=403,
            headers={"WWW-Authenticate": f'Bearer error="insufficient_scope", scope="{scope}"'},
        )
    return JSONResponse(
        {"error": "invalid_token", "error_description": error.message},
        status_code=401,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _value(source: Any, key: str) -> str | None:
    value = source.get(key)
    if value is None or isinstance(value, str) and not value:
        return None
    return str(value)


def client_credentials_from_request(request: Request, form: FormData) -> tuple[str | None, str | None]:
    """
    Read client credentials from HTTP Basic (client_secret_basic) or the form
    body (client_secret_post). Basic takes precedence.
    """
    auth_header = request.headers.get("Authorization", "")
    scheme, _, encoded = auth_header.partition(" ")
    if scheme.lower() == "basic" and encoded:
        try:
            decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise oauth_error(INVALID_REQUEST, "Malformed Basic authorization header") from e
        client_id, sep, client_secret = decoded.partition(":")
        if not sep:
            raise oauth_error(INVALID_REQUEST, "Malformed Basic authorization header")
        return unquote_plus(client_id) or None, unquote_plus(client_secret) or None

    return _value(form, "client_id"), _value(form, "client_secret")


async def _read_body(request: Request) -> dict[str, Any]:
    """Read a JSON or form-encoded body as a dict."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError as e:
            raise oauth_error(INVALID_REQUEST, "Malformed JSON body") from e
        if not isinstance(body, dict):
            raise oauth_error(INVALID_REQUEST, "JSON body must be an object")
        return body
    form = await request.form()
    return {key: value for key, value in form.items()}


def _validation_error(exc: ValidationError) -> OAuthError:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return oauth_error(INVALID_REQUEST, f"{location}: {first['msg']}")


# OAuth2 endpoint handlers
async def authorization_server_metadata(request: Request, context: "AppContext"):
    """OAuth 2.0 Authorization Server Metadata (RFC 8414)."""
    return JSONResponse(context.orchestrator.get_authorization_server_metadata())


async def health_check(request: Request, context: "AppContext"):
    return JSONResponse({"status": "healthy", "service": "oauth-core"})


async def authorize(request: Request, context: "AppContext"):
    """
    Authorization endpoint (RFC 6749 Section 4.1.1).

    Errors are reported by redirect once the client and redirect URI are
    known to be valid; before that, an error page is rendered instead.
    """
    params = request.query_params
    client_id = params.get("client_id")
    redirect_uri = params.get("redirect_uri")
    state = params.get("state")

    try:
        principal = await context.guard.authorize(request, "authorize")
    except AuthenticationError as e:
        return auth_error_response(e)

    try:
        trusted = await context.orchestrator.verify_redirect_target(client_id, redirect_uri)
    except Exception as e:
        return server_error_response(e)

    if not trusted:
        logger.info(f"Refusing to redirect to untrusted URI for client {client_id}")
        return render_template(
            "error.html",
            {
                "title": "Invalid Authorization Request",
                "message": "The client or its redirect URI is not registered with this server.",
            },
            status_code=400,
        )

    try:
        grant = await context.orchestrator.initiate_authorization(
            principal.to_context(),
            params.get("response_type"),
            client_id,
            redirect_uri,
            scope=params.get("scope"),
            state=state,
            code_challenge=params.get("code_challenge"),
            code_challenge_method=params.get("code_challenge_method"),
        )
    except OAuthError as e:
        location = build_redirect_url(
            redirect_uri,
            {"error": e.code, "error_description": e.description, "state": state},
        )
        return RedirectResponse(url=location, status_code=302)
    except Exception as e:
        logger.error(f"Authorization failed for client {client_id}: {e}", exc_info=True)
        location = build_redirect_url(
            redirect_uri,
            {
                "error": SERVER_ERROR,
                "error_description": ERROR_DESCRIPTIONS[SERVER_ERROR],
                "state": state,
            },
        )
        return RedirectResponse(url=location, status_code=302)

    location = build_redirect_url(grant.redirect_uri, {"code": grant.code, "state": grant.state})
    return RedirectResponse(url=location, status_code=302)


async def authorize_info(request: Request, context: "AppContext"):
    """Client and scope details for the consent screen."""
    try:
        principal = await context.guard.authorize(request, "authorize.info")
    except AuthenticationError as e:
        return auth_error_response(e)

    params = request.query_params
    try:
        info = await context.orchestrator.get_consent_info(
            principal.to_context(),
            params.get("client_id"),
            params.get("redirect_uri"),
            scope=params.get("scope"),
        )
    except OAuthError as e:
        return oauth_error_response(e)
    except Exception as e:
        return server_error_response(e)

    return JSONResponse(info.model_dump())


async def authorize_approve(request: Request, context: "AppContext"):
    """Consent granted: issue a code and return the redirect URL carrying it."""
    try:
        principal = await context.guard.authorize(request, "authorize.approve")
    except AuthenticationError as e:
        return auth_error_response(e)

    try:
        decision = ConsentDecisionRequest(**await _read_body(request))
        redirect_url = await context.orchestrator.approve_authorization(
            principal.to_context(),
            decision.client_id,
            decision.redirect_uri,
            scope=decision.scope,
            state=decision.state,
            code_challenge=decision.code_challenge,
            code_challenge_method=decision.code_challenge_method,
        )
    except ValidationError as e:
        return oauth_error_response(_validation_error(e))
    except OAuthError as e:
        return oauth_error_response(e)
    except Exception as e:
        return server_error_response(e)

    return JSONResponse({"redirect_url": redirect_url})


async def authorize_deny(request: Request, context: "AppContext"):
    """Consent refused: return the redirect URL carrying ``access_denied``."""
    try:
        principal = await context.guard.authorize(request, "authorize.deny")
    except AuthenticationError as e:
        return auth_error_response(e)

    try:
        decision = ConsentDecisionRequest(**await _read_body(request))
        redirect_url = await context.orchestrator.deny_authorization(
            principal.to_context(),
            decision.client_id,
            decision.redirect_uri,
            state=decision.state,
        )
    except ValidationError as e:
        return oauth_error_response(_validation_error(e))
    except OAuthError as e:
        return oauth_error_response(e)
    except Exception as e:
        return server_error_response(e)

    return JSONResponse({"redirect_url": redirect_url})


async def token_endpoint(request: Request, context: "AppContext"):
    """Token endpoint - dispatches on grant_type."""
    try:
        form = await request.form()
        client_id, client_secret = client_credentials_from_request(request, form)
        params = {key: _value(form, key) for key in form.keys()}
        params["client_id"] = client_id
        params["client_secret"] = client_secret

        response = await context.orchestrator.token(
            RequestContext.anonymous(),
            _value(form, "grant_type"),
            params,
        )
    except OAuthError as e:
        headers = dict(NO_STORE_HEADERS)
        if e.status_code == 401:
            headers["WWW-Authenticate"] = 'Basic realm="oauth"'
        return oauth_error_response(e, headers)
    except Exception as e:
        return server_error_response(e, NO_STORE_HEADERS)

    return JSONResponse(response.to_response(), headers=NO_STORE_HEADERS)


async def revoke_endpoint(request: Request, context: "AppContext"):
    """Token revocation (RFC 7009). Responds 200 whether or not the token was valid."""
    try:
        form = await request.form()
        client_id, client_secret = client_credentials_from_request(request, form)
        await context.orchestrator.revoke_token(
            RequestContext.anonymous(),
            _value(form, "token"),
            client_id,
            client_secret,
            token_type_hint=_value(form, "token_type_hint"),
        )
    except OAuthError as e:
        logger.info(f"Ignoring revocation error: {e.code}")
    except Exception as e:
        return server_error_response(e)

    return Response(status_code=200)


async def introspect_endpoint(request: Request, context: "AppContext"):
    """Token introspection (RFC 7662). Requires confidential client credentials."""
    try:
        form = await request.form()
        client_id, client_secret = client_credentials_from_request(request, form)
        result = await context.orchestrator.introspect_token(
            RequestContext.anonymous(),
            _value(form, "token"),
            client_id,
            client_secret,
            token_type_hint=_value(form, "token_type_hint"),
        )
    except OAuthError as e:
        return oauth_error_response(e, NO_STORE_HEADERS)
    except Exception as e:
        return server_error_response(e, NO_STORE_HEADERS)

    return JSONResponse(result.to_response(), headers=NO_STORE_HEADERS)


# Client management handlers
async def _owned_client(context: "AppContext", principal: Principal, client_id: str):
    client = await context.clients.get_client(client_id)
    if client is None:
        return None, JSONResponse(
            {"error": "not_found", "error_description": "Client not found"}, status_code=404
        )
    if client.owner_id is None or client.owner_id != principal.user_id:
        return None, JSONResponse(
            {"error": "access_denied", "error_description": "Access denied"}, status_code=403
        )
    return client, None


async def _authorize_owner(request: Request, context: "AppContext", operation: str):
    principal = await context.guard.authorize(request, operation)
    if not principal.user_id:
        raise AuthenticationError("User authentication required")
    return principal


async def list_clients(request: Request, context: "AppContext"):
    try:
        principal = await _authorize_owner(request, context, "clients.list")
    except AuthenticationError as e:
        return auth_error_response(e)

    try:
        clients = await context.clients.list_clients(principal.user_id)
    except Exception as e:
        return server_error_response(e)

    return JSONResponse({"data": [to_client_info(c).model_dump() for c in clients]})


async def create_client(request: Request, context: "AppContext"):
    try:
        principal = await _authorize_owner(request, context, "clients.create")
    except AuthenticationError as e:
        return auth_error_response(e)

    try:
        body = ClientCreateRequest(**await _read_body(request))
        client, client_secret = await context.clients.create_client(
            name=body.name,
            redirect_uris=body.redirect_uris,
            allowed_scopes=body.allowed_scopes,
            allowed_grant_types=body.allowed_grant_types,
            is_confidential=body.is_confidential,
            description=body.description,
            access_token_lifetime=body.access_token_lifetime,
            refresh_token_lifetime=body.refresh_token_lifetime,
            owner_id=principal.user_id,
            tenant_id=principal.tenant_id,
        )
    except ValidationError as e:
        return oauth_error_response(_validation_error(e))
    except OAuthError as e:
        return oauth_error_response(e)
    except Exception as e:
        return server_error_response(e)

    credentials = ClientCredentials(client=to_client_info(client), client_secret=client_secret)
    hidden = {"client_secret"} if client_secret is None else None
    return JSONResponse(
        credentials.model_dump(exclude=hidden), status_code=201, headers=NO_STORE_HEADERS
    )


async def get_client(request: Request, context: "AppContext"):
    try:
        principal = await _authorize_owner(request, context, "clients.get")
    except AuthenticationError as e:
        return auth_error_response(e)

    try:
        client, denied = await _owned_client(context, principal, request.path_params["client_id"])
    except Exception as e:
        return server_error_response(e)

    if denied is not None:
        return denied
    return JSONResponse({"client": to_client_info(client).model_dump()})


async def update_client(request: Request, context: "AppContext"):
    try:
        principal = await _authorize_owner(request, context, "clients.update")
    except AuthenticationError as e:
        return auth_error_response(e)

    client_id = request.path_params["client_id"]
    try:
        _, denied = await _owned_client(context, principal, client_id)
        if denied is not None:
            return denied
        body = ClientUpdateRequest(**await _read_body(request))
        client = await context.clients.update_client(client_id, **body.model_dump())
    except ValidationError as e:
        return oauth_error_response(_validation_error(e))
    except OAuthError as e:
        return oauth_error_response(e)
    except Exception as e:
        return server_error_response(e)

    return JSONResponse({"client": to_client_info(client).model_dump()})


async def delete_client(request: Request, context: "AppContext"):
    try:
        principal = await _authorize_owner(request, context, "clients.delete")
    except AuthenticationError as e:
        return auth_error_response(e)

    client_id = request.path_params["client_id"]
    try:
        _, denied = await _owned_client(context, principal, client_id)
        if denied is not None:
            return denied
        await context.clients.delete_client(client_id)
    except OAuthError as e:
        return oauth_error_response(e)
    except Exception as e:
        return server_error_response(e)

    return Response(status_code=204)


async def regenerate_client_secret(request: Request, context: "AppContext"):
    try:
        principal = await _authorize_owner(request, context, "clients.regenerate_secret")
    except AuthenticationError as e:
        return auth_error_response(e)

    client_id = request.path_params["client_id"]
    try:
        client, denied = await _owned_client(context, principal, client_id)
        if denied is not None:
            return denied
        client_secret = await context.clients.regenerate_secret(client_id)
    except OAuthError as e:
        return oauth_error_response(e)
    except Exception as e:
        return server_error_response(e)

    credentials = ClientCredentials(client=to_client_info(client), client_secret=client_secret)
    return JSONResponse(credentials.model_dump(), headers=NO_STORE_HEADERS)
