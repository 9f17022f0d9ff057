"""Posts and comments router.

    GET  /post             - All posts, oldest first
    POST /post             - Create a post (201)
    GET  /post/{post_id}   - One post with its comments
    POST /comment          - Comment on a post (201)

Every route requires a logged-in session; the author is the session user.
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from archive.auth.gate import SESSION_USER_ID, SESSION_USER_LOGIN, require_session
from archive.exceptions import DocumentStoreNotReady

from .schemas import CommentCreate, PostCreate
from .service import PostService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["posts"], dependencies=[Depends(require_session)])


def get_post_service(request: Request) -> PostService:
    service = getattr(request.app.state, "post_service", None)
    if service is None:
        raise DocumentStoreNotReady("Document store not ready")
    return service


@router.get("/post")
async def list_posts(service: PostService = Depends(get_post_service)) -> JSONResponse:
    posts = service.list_posts()
    return JSONResponse([post.model_dump(mode="json") for post in posts])


@router.post("/post", status_code=201)
async def create_post(
    request: Request,
    body: PostCreate,
    service: PostService = Depends(get_post_service),
) -> JSONResponse:
    """Create a post authored by the session user.

    Returns:
        The created post (201 Created).
    """
    post = service.create_post(
        title=body.title,
        body=body.body,
        author_id=request.session[SESSION_USER_ID],
        author_login=request.session[SESSION_USER_LOGIN],
    )
    logger.info("[posts] Created %s by %s: %s", post.id, post.author_login, post.title)
    return JSONResponse(post.model_dump(mode="json"), status_code=201)


@router.get("/post/{post_id}")
async def view_post(post_id: str, service: PostService = Depends(get_post_service)) -> JSONResponse:
    """One post and its comments, or 404 ``{"err": "No post exists"}``."""
    thread = service.get_thread(post_id)
    return JSONResponse(thread.model_dump(mode="json"))


@router.post("/comment", status_code=201)
async def create_comment(
    request: Request,
    body: CommentCreate,
    service: PostService = Depends(get_post_service),
) -> JSONResponse:
    """Comment on a post as the session user.

    Returns:
        The created comment (201), or 404 if the post does not exist.
    """
    comment = service.add_comment(
        post_id=body.post_id,
        body=body.body,
        author_id=request.session[SESSION_USER_ID],
        author_login=request.session[SESSION_USER_LOGIN],
    )
    logger.info("[posts] Comment %s on %s by %s", comment.id, comment.post_id, comment.author_login)
    return JSONResponse(comment.model_dump(mode="json"), status_code=201)
