"""Workflow definitions module."""

from workflows.order_sync_workflow import OrderSyncWorkflow, OrderSyncInput, TASK_QUEUE

__all__ = ["OrderSyncWorkflow", "OrderSyncInput", "TASK_QUEUE"]
