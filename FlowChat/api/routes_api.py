# Standard library imports
import json
import posixpath
from typing import List, Optional
from urllib.parse import quote, unquote, urlencode

# Third-party imports
from fastapi import Body, Query
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel

# Local imports
from .routes_base import *
from ..core.message.protocol import index_from_value, render_transcript
from ..core.utils.constants import CATALOG_KEY, META_SUFFIX
from ..core.utils.exceptions import ParseError
from ..core.utils.helpers import conversation_prefix, index_key

# encodeURI leaves these unescaped besides alphanumerics
_URI_SAFE = ";,/?:@&=+$-_.!~*'()#"


class RenameRequest(BaseModel):
    oldId: Optional[str] = None
    newId: Optional[str] = None


@app.put("/upload")
async def upload(request: Request, key: Optional[str] = Query(None)):
    """Store the raw request body under ``key`` and return its retrieval URL."""
    if not key:
        return error_response("missing key", 400)
    content_type = request.headers.get("content-type") or "application/octet-stream"
    await get_store().put(key, await request.body(), content_type)
    public_url = f"{str(request.base_url).rstrip('/')}/get?{urlencode({'key': key})}"
    return {"url": public_url}


@app.get("/get", name="get_blob")
async def get_blob(key: Optional[str] = Query(None)):
    if not key:
        return error_response("missing key", 400)
    blob = await get_store().get(key)
    if blob is None:
        return PlainTextResponse("Not found", status_code=404)
    return Response(content=blob.data, media_type=blob.content_type)


@app.get("/json")
async def get_json(key: Optional[str] = Query(None)):
    if not key:
        return JSONResponse(None, status_code=400)
    blob = await get_store().get(key)
    if blob is None:
        return JSONResponse(None, status_code=404)
    try:
        return JSONResponse(json.loads(blob.data.decode("utf-8")))
    except (UnicodeDecodeError, ValueError):
        return error_response("invalid json in storage", 500)


@app.api_route("/json", methods=["PUT", "POST"])
async def put_json(request: Request, key: Optional[str] = Query(None)):
    if not key:
        return error_response("missing key", 400)
    try:
        value = json.loads((await request.body()).decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        return error_response("invalid json body", 400)
    body = json.dumps(value, ensure_ascii=False, indent=2).encode("utf-8")
    await get_store().put(key, body, "application/json")
    return {"ok": True}


@app.get("/list-conversations")
async def list_conversations():
    """The catalog document, or an empty list when it is absent or unreadable."""
    blob = await get_store().get(CATALOG_KEY)
    if blob is None:
        return []
    try:
        catalog = json.loads(blob.data.decode("utf-8"))
    except (UnicodeDecodeError, ValueError):
        logger.warning("Catalog at %s is not valid JSON", CATALOG_KEY)
        return []
    return catalog if isinstance(catalog, list) else []


@app.delete("/delete-conversation")
async def delete_conversation(id: Optional[str] = Query(None)):
    """Delete every key under ``conversations/{id}/``; 404 when there was nothing."""
    if not id:
        return error_response("missing id", 400)
    store = get_store()
    keys = await store.list(conversation_prefix(id))
    if not keys:
        return error_response("not found", 404)
    for k in keys:
        await store.delete(k)
    return {"ok": True}


async def _sibling_matches(candidate: str) -> List[str]:
    """Loose matches next to ``candidate``: same name decoded, or one name a suffix of the other."""
    parent, base = posixpath.split(candidate)
    if not parent or not base:
        return []
    decoded_base = unquote(base)
    matches = []
    for k in await get_store().list(parent + "/"):
        name = k[len(parent) + 1:]
        if "/" in name:
            continue
        if name == base or name == decoded_base or name.endswith(base) or base.endswith(name):
            matches.append(k)
            matches.append(k + META_SUFFIX)
    return matches


@app.delete("/delete-file")
async def delete_file(key: Optional[str] = Query(None)):
    """
    Delete a stored file, tolerating historically inconsistent key encoding.

    Tries the raw key, its URL-decoded and URL-encoded spellings, then loose
    sibling matches; the first key that exists is deleted along with its
    metadata sidecar.
    """
    if not key:
        return error_response("missing key", 400)

    candidates = [key, unquote(key), quote(key, safe=_URI_SAFE)]
    tried: List[str] = []
    for c in candidates:
        if c not in tried:
            tried.append(c)
    for c in candidates:
        for match in await _sibling_matches(c):
            if match not in tried:
                tried.append(match)

    store = get_store()
    for c in tried:
        try:
            if await store.delete(c):
                return {"ok": True}
        except ValidationError:
            continue
    return error_response("not found", 404, tried=tried)


@app.get("/export")
async def export(conv: Optional[str] = Query(None), key: Optional[str] = Query(None)):
    conv_id = conv or key
    if not conv_id:
        return error_response("missing conv id", 400)
    blob = await get_store().get(index_key(conv_id))
    if blob is None:
        return PlainTextResponse("Not found", status_code=404)
    try:
        index = index_from_value(json.loads(blob.data.decode("utf-8")))
    except (UnicodeDecodeError, ValueError, ParseError):
        return PlainTextResponse("invalid index json", status_code=500)
    transcript = render_transcript(index.title or conv_id, index.messages, sender=index.sender or "")
    return PlainTextResponse(transcript, media_type="text/plain; charset=utf-8")


@app.api_route("/rename-conversation", methods=["POST", "PUT"])
async def rename_conversation(body: Optional[RenameRequest] = Body(None)):
    """Move every key from ``conversations/{oldId}/`` to ``conversations/{newId}/``."""
    if body is None or not body.oldId or not body.newId:
        return error_response("missing params", 400)
    store = get_store()
    old_prefix = conversation_prefix(body.oldId)
    new_prefix = conversation_prefix(body.newId)
    old_keys = await store.list(old_prefix)
    if not old_keys:
        return error_response("old not found", 404)
    if await store.list(new_prefix):
        return error_response("new already exists", 409)
    for old_key in old_keys:
        blob = await store.get(old_key)
        if blob is None:
            continue
        await store.put(new_prefix + old_key[len(old_prefix):], blob.data, blob.content_type)
        await store.delete(old_key)
    return {"ok": True}
