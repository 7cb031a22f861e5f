"""FastAPI app with search, suggestion, price-optimization and cart endpoints.

Handlers get a request-scoped `ProductStore` and the process-wide
`EmbeddingService` through dependencies, so both can be overridden in tests.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Query, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ai.embeddings import EmbeddingService, create_embedding_service
from .config import settings
from .db import get_session
from .logging_config import setup_logging
from .pipelines.cart import CartLine, summarize_cart
from .pipelines.diagnostics import run_diagnostics
from .pipelines.optimize import PricedProduct, QueryValidationError, optimize_prices
from .pipelines.records import PRICE_NOT_AVAILABLE, ProductRecord, SearchMethod, SearchOutcome
from .pipelines.related import RecommendationError, recommend, similar_products
from .pipelines.normalization import parse_price
from .pipelines.retrieval import ProductStore, RetrievalError
from .pipelines.search import SearchMode, hybrid_search
from .pipelines.suggestions import get_suggestions

logger = logging.getLogger(__name__)


# Pydantic response models
class CamelModel(BaseModel):
    """Serializes with the camelCase keys the dashboard expects."""
    model_config = ConfigDict(populate_by_name=True)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    detail: str | None = None


class GroceryItemDTO(CamelModel):
    """Product as displayed in search results (price kept as text)."""
    id: str
    name: str
    price: str
    store: str
    quantity: str
    description: str | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")
    product_url: str | None = Field(default=None, alias="productUrl")
    promotion: str | None = None
    similarity: float | None = None

    @classmethod
    def from_record(cls, record: ProductRecord) -> "GroceryItemDTO":
        return cls(
            id=record.id,
            name=record.name,
            price=record.price,
            store=record.store,
            quantity=record.quantity,
            description=record.promotion,
            image_url=record.image_url,
            product_url=record.product_url,
            promotion=record.promotion,
            similarity=record.similarity,
        )


class SearchRequest(BaseModel):
    """Search request body."""
    query: str = ""
    limit: int = Field(default=settings.search.default_limit, ge=1, le=settings.search.max_limit)
    supermarket: str | None = None
    exclude_stores: list[str] | None = None
    mode: SearchMode = SearchMode.HYBRID


class SearchResponse(CamelModel):
    """Search response."""
    results: list[GroceryItemDTO] = Field(default_factory=list)
    query: str
    result_count: int = Field(alias="resultCount")
    search_method: SearchMethod = Field(alias="searchMethod")
    fallback: bool = False
    message: str | None = None


class SuggestionDTO(BaseModel):
    """Autocomplete suggestion (price parsed to a number)."""
    id: str
    name: str
    price: float
    store: str
    quantity: str
    promotion: str | None = None

    @classmethod
    def from_record(cls, record: ProductRecord) -> "SuggestionDTO":
        return cls(
            id=record.id,
            name=record.name,
            price=parse_price(record.price),
            store=record.store,
            quantity=record.quantity,
            promotion=record.promotion,
        )


class PriceResultDTO(CamelModel):
    """Price-ranked product with numeric price and original price text."""
    id: str
    name: str
    price: float
    price_text: str = Field(alias="priceText")
    store: str
    quantity: str
    description: str | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")
    product_url: str | None = Field(default=None, alias="productUrl")
    promotion: str | None = None
    similarity: float | None = None

    @classmethod
    def from_priced(cls, priced: PricedProduct) -> "PriceResultDTO":
        record = priced.record
        return cls(
            id=record.id,
            name=record.name,
            price=priced.price,
            price_text=record.price or PRICE_NOT_AVAILABLE,
            store=record.store,
            quantity=record.quantity,
            description=record.promotion,
            image_url=record.image_url,
            product_url=record.product_url,
            promotion=record.promotion,
            similarity=record.similarity,
        )


class OptimizeResponse(CamelModel):
    """Price optimization response."""
    results: list[PriceResultDTO] = Field(default_factory=list)
    total: int
    query: str
    search_method: SearchMethod = Field(alias="searchMethod")
    fallback: bool = False
    message: str


class RecommendationRequest(BaseModel):
    """Recommendation request."""
    preferences: list[str] = Field(default_factory=list)
    limit: int = Field(default=settings.search.default_limit, ge=1, le=settings.search.max_limit)


class CartProductDTO(BaseModel):
    """Product reference carried by a cart line."""
    id: str
    name: str
    price: str
    store: str = ""
    quantity: str = ""


class CartLineDTO(BaseModel):
    product: CartProductDTO
    quantity: int = Field(default=1, ge=1)


class CartRequest(BaseModel):
    """Cart summary request."""
    items: list[CartLineDTO] = Field(default_factory=list)


class CartLineSummaryDTO(BaseModel):
    id: str
    name: str
    quantity: int
    unit_price: float
    line_total: float


class CartSummaryResponse(BaseModel):
    """Cart summary response."""
    lines: list[CartLineSummaryDTO]
    item_count: int
    subtotal: float
    tax: float
    total: float


# Dependencies
def get_product_store(session: AsyncSession = Depends(get_session)) -> ProductStore:
    """Request-scoped product store."""
    return ProductStore(session)


def get_embedder(request: Request) -> EmbeddingService:
    """Process-wide embedding service created at startup."""
    return request.app.state.embedder


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown logic."""
    # Startup
    setup_logging()
    logger.info("Application starting up")
    app.state.embedder = create_embedding_service()

    yield

    # Shutdown
    await app.state.embedder.aclose()
    logger.info("Application shutting down")


app = FastAPI(
    title="GroceryPicker API",
    version=settings.version,
    description="Grocery price comparison with hybrid text and semantic search",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(QueryValidationError)
async def query_validation_error_handler(request, exc: QueryValidationError):
    """Handle invalid optimize queries."""
    logger.info(f"Rejected query: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error="invalid_query", detail=str(exc)).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request, exc: RequestValidationError):
    """Render request validation failures as 400s."""
    logger.info(f"Invalid request to {request.url.path}: {exc.errors()}")
    content = ErrorResponse(error="invalid_request", detail=str(exc.errors())).model_dump()
    if request.url.path == "/api/grocerysearch":
        content.update(results=[], query="", resultCount=0, searchMethod=SearchMethod.ERROR.value)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)


@app.exception_handler(RecommendationError)
async def recommendation_error_handler(request, exc: RecommendationError):
    """Handle recommendation requests without preferences."""
    logger.info(f"Rejected recommendation request: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=ErrorResponse(error="recommendation_error", detail=str(exc)).model_dump(),
    )


@app.exception_handler(RetrievalError)
async def retrieval_error_handler(request, exc: RetrievalError):
    """Handle backend failures that have no fallback."""
    logger.error(f"Retrieval error: {exc}")
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content=ErrorResponse(error="retrieval_error", detail=str(exc)).model_dump(),
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request, exc: Exception):
    """Anything else is a generic 500."""
    logger.error(f"Unexpected error handling {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(error="internal_error", detail="Internal server error").model_dump(),
    )


def _search_response(outcome: SearchOutcome) -> SearchResponse:
    return SearchResponse(
        results=[GroceryItemDTO.from_record(r) for r in outcome.results],
        query=outcome.query,
        result_count=outcome.count,
        search_method=outcome.method,
        fallback=outcome.fallback,
        message=outcome.message,
    )


@app.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        version=settings.version,
    )


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "app": settings.app_name,
        "version": settings.version,
        "environment": settings.environment.value,
        "endpoints": {
            "health": "/health",
            "search": "/api/grocerysearch",
            "suggestions": "/api/suggestions",
            "optimize": "/api/optimize",
            "similar": "/api/products/{product_id}/similar",
            "recommendations": "/api/recommendations",
            "cart_summary": "/api/cart/summary",
            "debug_db": "/api/debug-db",
            "docs": "/docs",
        },
    }


@app.get(
    "/api/grocerysearch",
    response_model=SearchResponse,
    response_model_by_alias=True,
)
async def search_get(
    q: str = "",
    limit: int = Query(default=settings.search.default_limit, ge=1, le=settings.search.max_limit),
    supermarket: str | None = None,
    exclude: list[str] | None = Query(default=None),
    mode: SearchMode = SearchMode.HYBRID,
    store: ProductStore = Depends(get_product_store),
    embedder: EmbeddingService = Depends(get_embedder),
) -> SearchResponse:
    """Hybrid product search.

    Text matches come first, then embedding matches; the optional
    `supermarket` filter is a case-insensitive substring on the store name.
    """
    outcome = await hybrid_search(
        store,
        embedder,
        q,
        limit=limit,
        store_filter=supermarket,
        exclude_stores=exclude,
        mode=mode,
    )
    return _search_response(outcome)


@app.post(
    "/api/grocerysearch",
    response_model=SearchResponse,
    response_model_by_alias=True,
)
async def search_post(
    request: SearchRequest,
    store: ProductStore = Depends(get_product_store),
    embedder: EmbeddingService = Depends(get_embedder),
) -> SearchResponse:
    """Hybrid product search with a JSON body."""
    outcome = await hybrid_search(
        store,
        embedder,
        request.query,
        limit=request.limit,
        store_filter=request.supermarket,
        exclude_stores=request.exclude_stores,
        mode=request.mode,
    )
    return _search_response(outcome)


@app.get("/api/suggestions", response_model=list[SuggestionDTO])
async def suggestions(
    q: str = "",
    limit: int = Query(default=settings.search.suggestion_limit, ge=1, le=settings.search.max_limit),
    store: ProductStore = Depends(get_product_store),
    embedder: EmbeddingService = Depends(get_embedder),
) -> list[SuggestionDTO]:
    """Autocomplete suggestions; queries under 2 characters return []."""
    records = await get_suggestions(store, embedder, q, limit=limit)
    return [SuggestionDTO.from_record(r) for r in records]


async def _optimize(query: object, store: ProductStore, embedder: EmbeddingService) -> OptimizeResponse:
    ranking = await optimize_prices(store, embedder, query)
    return OptimizeResponse(
        results=[PriceResultDTO.from_priced(p) for p in ranking.results],
        total=ranking.total,
        query=ranking.query,
        search_method=ranking.method,
        fallback=ranking.fallback,
        message=ranking.message,
    )


@app.post(
    "/api/optimize",
    response_model=OptimizeResponse,
    response_model_by_alias=True,
)
async def optimize_post(
    request: Request,
    store: ProductStore = Depends(get_product_store),
    embedder: EmbeddingService = Depends(get_embedder),
) -> OptimizeResponse:
    """Five cheapest plausible matches for `{query}`."""
    try:
        body = await request.json()
    except ValueError:
        raise QueryValidationError("Request body must be JSON")

    query = body.get("query") if isinstance(body, dict) else None
    return await _optimize(query, store, embedder)


@app.get(
    "/api/optimize",
    response_model=OptimizeResponse,
    response_model_by_alias=True,
)
async def optimize_get(
    query: str | None = None,
    store: ProductStore = Depends(get_product_store),
    embedder: EmbeddingService = Depends(get_embedder),
) -> OptimizeResponse:
    """Query-string variant of the price optimization endpoint."""
    return await _optimize(query, store, embedder)


@app.get(
    "/api/products/{product_id}/similar",
    response_model=list[GroceryItemDTO],
    response_model_by_alias=True,
)
async def similar(
    product_id: str,
    limit: int = Query(default=settings.search.similar_limit, ge=1, le=settings.search.max_limit),
    threshold: float | None = Query(default=None, ge=0.0, le=1.0),
    store: ProductStore = Depends(get_product_store),
) -> list[GroceryItemDTO]:
    """Products similar to an existing product."""
    records = await similar_products(store, product_id, threshold=threshold, limit=limit)
    return [GroceryItemDTO.from_record(r) for r in records]


@app.post(
    "/api/recommendations",
    response_model=list[GroceryItemDTO],
    response_model_by_alias=True,
)
async def recommendations(
    request: RecommendationRequest,
    store: ProductStore = Depends(get_product_store),
    embedder: EmbeddingService = Depends(get_embedder),
) -> list[GroceryItemDTO]:
    """Recommendations from previously searched or purchased items."""
    records = await recommend(store, embedder, request.preferences, limit=request.limit)
    return [GroceryItemDTO.from_record(r) for r in records]


@app.post("/api/cart/summary", response_model=CartSummaryResponse)
async def cart_summary(request: CartRequest) -> CartSummaryResponse:
    """Merge cart lines and price them; nothing is persisted."""
    lines = [
        CartLine(
            product=ProductRecord(
                id=item.product.id,
                name=item.product.name,
                price=item.product.price,
                store=item.product.store,
                quantity=item.product.quantity,
            ),
            quantity=item.quantity,
        )
        for item in request.items
    ]
    summary = summarize_cart(lines)
    return CartSummaryResponse(
        lines=[
            CartLineSummaryDTO(
                id=line.product.id,
                name=line.product.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
            for line in summary.lines
        ],
        item_count=summary.item_count,
        subtotal=summary.subtotal,
        tax=summary.tax,
        total=summary.total,
    )


@app.get("/api/debug-db")
async def debug_db(
    store: ProductStore = Depends(get_product_store),
    embedder: EmbeddingService = Depends(get_embedder),
):
    """Check the database, stored embeddings, embedding provider and match function."""
    report = await run_diagnostics(store, embedder)
    return report.to_dict()
