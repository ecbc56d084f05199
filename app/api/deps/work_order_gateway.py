from __future__ import annotations

from app.services.work_order_gateway import WorkOrderGateway, WorkOrderServiceClient


def get_work_order_gateway() -> WorkOrderGateway:
    return WorkOrderServiceClient()
