"""
Credits Module

Usage:
    from imagegen.src.billing.credits import credit_manager

    result = await credit_manager.apply_purchase_credit(purchase_id)
    balance = await credit_manager.get_balance(user_id)
"""

from .manager import CreditManager, credit_manager

__all__ = ['CreditManager', 'credit_manager']
