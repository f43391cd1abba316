from smoothsend.admin.controls import AdminControls

__all__ = ["AdminControls"]
