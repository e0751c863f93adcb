from fastapi import APIRouter, Depends, HTTPException, Query

from creo.api.deps import get_catalog_source, get_pipeline, get_sessions, get_stock_client
from creo.schemas.batch import (
    BatchCreate,
    BatchInputUpdate,
    BatchStateOut,
    BatchStatsOut,
    CostSummaryOut,
    ItemMetadataOut,
    OrderConfirmationOut,
    OrderItemOut,
    ParsedReferenceOut,
    ResolvedItemOut,
)
from creo.services.session_store import BatchSessionRegistry
from creo.services.stock.aggregator import BalanceUnavailableError
from creo.services.stock.catalog import CatalogSource, CatalogUnavailableError
from creo.services.stock.client import StockApiClient
from creo.services.stock.order_creator import EmptyOrderError, OrderSubmissionError
from creo.services.stock.pipeline import BatchNotSettledError, InsufficientBalanceError, StockBatchPipeline

router = APIRouter()


@router.post('/batches/', response_model=BatchStateOut, status_code=201)
def create_batch(
    payload: BatchCreate,
    client: StockApiClient = Depends(get_stock_client),
    catalog_source: CatalogSource = Depends(get_catalog_source),
    sessions: BatchSessionRegistry = Depends(get_sessions),
):
    pipeline = sessions.create(payload.user_id, client, catalog_source)
    if payload.raw_text:
        try:
            pipeline.update_input(payload.raw_text)
        except CatalogUnavailableError as exc:
            sessions.discard(pipeline.session.session_id)
            raise HTTPException(status_code=503, detail=str(exc))
    return _state_out(pipeline)


@router.get('/batches/{session_id}/', response_model=BatchStateOut)
def get_batch(
    pipeline: StockBatchPipeline = Depends(get_pipeline),
    wait: float = Query(default=0, ge=0, le=30),
):
    if wait:
        pipeline.wait(wait)
    return _state_out(pipeline)


@router.put('/batches/{session_id}/input/', response_model=BatchStateOut)
def update_input(payload: BatchInputUpdate, pipeline: StockBatchPipeline = Depends(get_pipeline)):
    _apply_input(pipeline, payload.raw_text)
    return _state_out(pipeline)


@router.post('/batches/{session_id}/items/{position}/retry/', response_model=BatchStateOut)
def retry_item(position: int, pipeline: StockBatchPipeline = Depends(get_pipeline)):
    try:
        pipeline.retry_item(position)
    except IndexError:
        raise HTTPException(status_code=404, detail='Item not found')
    except (ValueError, RuntimeError) as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return _state_out(pipeline)


@router.delete('/batches/{session_id}/lines/{line_number}/', response_model=BatchStateOut)
def remove_line(line_number: int, pipeline: StockBatchPipeline = Depends(get_pipeline)):
    try:
        pipeline.remove_line(line_number)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except CatalogUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return _state_out(pipeline)


@router.get('/batches/{session_id}/quote/', response_model=CostSummaryOut)
def quote_batch(pipeline: StockBatchPipeline = Depends(get_pipeline)):
    try:
        summary = pipeline.quote()
    except BalanceUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc))

    return CostSummaryOut(
        total_cost=summary.total_cost,
        totals_by_currency=summary.totals_by_currency,
        eligible_positions=[item.position for item in summary.eligible_items],
        balance=summary.balance.amount if summary.balance else None,
        balance_currency_unit=summary.balance.currency_unit if summary.balance else None,
        affordable=summary.affordable,
        reason=summary.reason,
        shortfall=summary.shortfall,
    )


@router.post('/batches/{session_id}/order/', response_model=OrderConfirmationOut)
def order_batch(pipeline: StockBatchPipeline = Depends(get_pipeline)):
    try:
        confirmation = pipeline.submit_order()
    except BatchNotSettledError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except EmptyOrderError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except InsufficientBalanceError as exc:
        raise HTTPException(status_code=402, detail=str(exc))
    except BalanceUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except OrderSubmissionError as exc:
        raise HTTPException(
            status_code=502,
            detail={
                'message': exc.message,
                'code': exc.code.value if exc.code else None,
                'details': exc.details,
            },
        )

    return OrderConfirmationOut(
        order_id=confirmation.order_id,
        is_partial=confirmation.is_partial,
        per_item_status=[OrderItemOut.model_validate(result) for result in confirmation.per_item_status],
    )


@router.delete('/batches/{session_id}/')
def close_batch(session_id: str, sessions: BatchSessionRegistry = Depends(get_sessions)):
    if not sessions.discard(session_id):
        raise HTTPException(status_code=404, detail='Batch session not found')
    return {'ok': True}


def _apply_input(pipeline: StockBatchPipeline, raw_text: str) -> None:
    try:
        pipeline.update_input(raw_text)
    except CatalogUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc))


def _state_out(pipeline: StockBatchPipeline) -> BatchStateOut:
    run = pipeline.current_pass
    items: list[ResolvedItemOut] = []
    if run is not None:
        for position, (status, item) in enumerate(run.snapshot()):
            reference = run.references[position]
            items.append(
                ResolvedItemOut(
                    position=position,
                    line_number=reference.line_number,
                    site=reference.site,
                    external_id=reference.external_id,
                    status=status,
                    is_success=item.is_success if item else False,
                    metadata=ItemMetadataOut.model_validate(item.metadata) if item and item.metadata else None,
                    error=item.error if item else None,
                    error_message=item.error_message if item else None,
                    resolved_at=item.resolved_at if item else None,
                )
            )

    return BatchStateOut(
        session_id=pipeline.session.session_id,
        user_id=pipeline.session.user_id,
        raw_text=pipeline.session.raw_text,
        generation=run.generation if run else None,
        is_settled=run.is_done if run else True,
        references=[ParsedReferenceOut.model_validate(ref) for ref in pipeline.references],
        items=items,
        stats=BatchStatsOut.model_validate(pipeline.stats()),
    )
