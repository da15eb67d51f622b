"""
Product roadmap: admin CRUD, public listing and voting
"""
from typing import Dict, List, Optional, Set

from slugify import slugify
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, ValidationFailedError
from app.core.logging_config import logger
from app.db.models import (
    AdminAuditLog, Profile, RoadmapCategory, RoadmapItem, RoadmapStatus, RoadmapVisibility, RoadmapVote, utcnow
)
from app.schemas.roadmap import RoadmapItemCreate, RoadmapItemUpdate


def title_slug(title: str) -> str:
    """'Instant Payouts (v2)!' -> 'instant-payouts-v2'"""
    return slugify(title, max_length=200, word_boundary=True) or "item"


class RoadmapService:
    """Service for roadmap items and votes"""

    @staticmethod
    def _unique_slug(db: Session, base: str, exclude_id: Optional[int] = None) -> str:
        slug = base
        suffix = 2
        while True:
            query = db.query(RoadmapItem).filter(RoadmapItem.slug == slug)
            if exclude_id:
                query = query.filter(RoadmapItem.id != exclude_id)
            if not query.first():
                return slug
            slug = f"{base}-{suffix}"
            suffix += 1

    @staticmethod
    def _stamp(item: RoadmapItem):
        now = utcnow()
        if item.visibility == RoadmapVisibility.PUBLISHED and not item.published_at:
            item.published_at = now
        if item.status == RoadmapStatus.SHIPPED and not item.shipped_at:
            item.shipped_at = now

    @staticmethod
    def get_item(db: Session, item_id: int) -> RoadmapItem:
        item = db.query(RoadmapItem).filter(RoadmapItem.id == item_id).first()
        if not item:
            raise NotFoundError("Roadmap item not found")
        return item

    @staticmethod
    def create_item(db: Session, admin: Profile, data: RoadmapItemCreate) -> RoadmapItem:
        if data.slug:
            if db.query(RoadmapItem).filter(RoadmapItem.slug == data.slug).first():
                raise ValidationFailedError("Slug already exists", {"slug": data.slug})
            slug = data.slug
        else:
            slug = RoadmapService._unique_slug(db, title_slug(data.title))

        item = RoadmapItem(
            title=data.title,
            slug=slug,
            description=data.description,
            status=data.status,
            category=data.category,
            priority=data.priority,
            target_quarter=data.target_quarter,
            visibility=data.visibility,
            target_audience=data.target_audience,
            tags=data.tags,
            created_by=admin.id,
        )
        RoadmapService._stamp(item)
        db.add(item)
        db.flush()
        db.add(AdminAuditLog(
            admin_id=admin.id,
            action_type="create_roadmap_item",
            target_resource_type="roadmap_item",
            target_resource_id=str(item.id),
            details={"slug": item.slug},
        ))
        db.commit()
        db.refresh(item)
        logger.info(f"Roadmap item created: {item.slug}")
        return item

    @staticmethod
    def update_item(db: Session, admin: Profile, item_id: int, data: RoadmapItemUpdate) -> RoadmapItem:
        item = RoadmapService.get_item(db, item_id)
        update_data = data.model_dump(exclude_unset=True)

        if "slug" in update_data and update_data["slug"] and update_data["slug"] != item.slug:
            clash = db.query(RoadmapItem).filter(
                RoadmapItem.slug == update_data["slug"],
                RoadmapItem.id != item.id
            ).first()
            if clash:
                raise ValidationFailedError("Slug already exists", {"slug": update_data["slug"]})

        for field, value in update_data.items():
            if value is None and field in ("title", "description", "status", "category", "priority", "visibility", "slug"):
                continue
            setattr(item, field, value)

        RoadmapService._stamp(item)
        db.add(AdminAuditLog(
            admin_id=admin.id,
            action_type="update_roadmap_item",
            target_resource_type="roadmap_item",
            target_resource_id=str(item.id),
            details={"fields": sorted(update_data.keys())},
        ))
        db.commit()
        db.refresh(item)
        return item

    @staticmethod
    def delete_item(db: Session, admin: Profile, item_id: int) -> None:
        item = RoadmapService.get_item(db, item_id)
        db.add(AdminAuditLog(
            admin_id=admin.id,
            action_type="delete_roadmap_item",
            target_resource_type="roadmap_item",
            target_resource_id=str(item.id),
            details={"slug": item.slug},
        ))
        db.delete(item)
        db.commit()
        logger.info(f"Roadmap item deleted: {item_id}")

    @staticmethod
    def admin_list_query(
        db: Session,
        visibility: Optional[RoadmapVisibility] = None,
        status: Optional[RoadmapStatus] = None,
        category: Optional[RoadmapCategory] = None,
        search: Optional[str] = None
    ):
        query = db.query(RoadmapItem)
        if visibility:
            query = query.filter(RoadmapItem.visibility == visibility)
        if status:
            query = query.filter(RoadmapItem.status == status)
        if category:
            query = query.filter(RoadmapItem.category == category)
        if search:
            query = query.filter(RoadmapItem.title.ilike(f"%{search}%"))
        return query.order_by(RoadmapItem.updated_at.desc(), RoadmapItem.id.desc())

    @staticmethod
    def list_published(
        db: Session,
        status: Optional[RoadmapStatus] = None,
        category: Optional[RoadmapCategory] = None,
        audience: Optional[str] = None
    ) -> List[RoadmapItem]:
        query = db.query(RoadmapItem).filter(RoadmapItem.visibility == RoadmapVisibility.PUBLISHED)
        if status:
            query = query.filter(RoadmapItem.status == status)
        if category:
            query = query.filter(RoadmapItem.category == category)
        items = query.order_by(RoadmapItem.vote_count.desc(), RoadmapItem.created_at.desc()).all()

        # Audience is a JSON list; filter in Python to stay portable across backends
        if audience:
            items = [
                i for i in items
                if not i.target_audience or "all" in i.target_audience or audience in i.target_audience
            ]
        return items

    @staticmethod
    def get_published_by_slug(db: Session, slug: str) -> RoadmapItem:
        item = db.query(RoadmapItem).filter(
            RoadmapItem.slug == slug,
            RoadmapItem.visibility == RoadmapVisibility.PUBLISHED
        ).first()
        if not item:
            raise NotFoundError("Roadmap item not found")
        return item

    @staticmethod
    def voted_item_ids(db: Session, user_id: int) -> Set[int]:
        return {
            v.roadmap_item_id for v in
            db.query(RoadmapVote).filter(RoadmapVote.user_id == user_id).all()
        }

    @staticmethod
    def toggle_vote(db: Session, user: Profile, item_id: int) -> Dict:
        item = RoadmapService.get_item(db, item_id)
        if item.visibility != RoadmapVisibility.PUBLISHED:
            raise NotFoundError("Roadmap item not found")

        vote = db.query(RoadmapVote).filter(
            RoadmapVote.roadmap_item_id == item.id,
            RoadmapVote.user_id == user.id
        ).first()

        if vote:
            db.delete(vote)
            action = "removed"
        else:
            try:
                with db.begin_nested():
                    db.add(RoadmapVote(roadmap_item_id=item.id, user_id=user.id))
            except IntegrityError:
                # Already voted
                pass
            action = "added"

        db.flush()
        item.vote_count = db.query(RoadmapVote).filter(RoadmapVote.roadmap_item_id == item.id).count()
        db.commit()
        db.refresh(item)
        return {
            "success": True,
            "action": action,
            "vote_count": item.vote_count,
            "has_voted": action == "added",
        }


# Global instance
roadmap_service = RoadmapService()
