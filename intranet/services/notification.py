from typing import List, Optional

from sqlalchemy.orm import Session

from intranet.models.notification import Notification


class NotificationService:
    @staticmethod
    def create_notification(
        db: Session,
        user_id: int,
        title: str,
        message: str,
        type: str = "info",
        link: Optional[str] = None,
        organization_id: Optional[int] = None
    ) -> Notification:
        """
        Queue a notification in the current transaction. The caller commits.
        """
        notification = Notification(
            user_id=user_id,
            organization_id=organization_id,
            title=title,
            message=message,
            type=type,
            link=link
        )
        db.add(notification)
        db.flush()
        return notification

    @staticmethod
    def notify_user(
        db: Session,
        user_id: Optional[int],
        title: str,
        message: str,
        type: str = "info",
        link: Optional[str] = None,
        organization_id: Optional[int] = None
    ) -> Optional[Notification]:
        if user_id is None:
            return None
        return NotificationService.create_notification(db, user_id, title, message, type, link, organization_id)

    @staticmethod
    def list_for_user(db: Session, user_id: int, unread_only: bool = False, limit: int = 50) -> List[Notification]:
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read == False)  # noqa: E712
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    @staticmethod
    def mark_read(db: Session, user_id: int, notification_id: int) -> Optional[Notification]:
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()
        if notification is None:
            return None
        notification.is_read = True
        db.commit()
        db.refresh(notification)
        return notification

    @staticmethod
    def mark_all_read(db: Session, user_id: int) -> int:
        updated = db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False  # noqa: E712
        ).update({Notification.is_read: True}, synchronize_session=False)
        db.commit()
        return updated
