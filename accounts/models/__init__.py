from accounts.models.state_record import StateRecord

__all__ = ["StateRecord"]
