"""
Public professional directory
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.db.models import CountryCode, Profile, ProfessionalProfile, Review, UserRole
from app.db.session import get_db
from app.schemas.review import ReviewResponse
from app.schemas.user import ProfessionalListing
from app.utils.pagination import PaginatedResponse, paginate_list

router = APIRouter(
    prefix="/api/directory",
    tags=["directory"]
)


def _listing(profile: Profile, pro: ProfessionalProfile) -> ProfessionalListing:
    return ProfessionalListing(
        id=profile.id,
        full_name=profile.full_name,
        country=profile.country,
        city=pro.city,
        bio=pro.bio,
        primary_services=pro.primary_services,
        hourly_rate=pro.hourly_rate,
        rating=pro.rating,
        review_count=pro.review_count,
        total_bookings=pro.total_bookings,
        background_check_status=pro.background_check_status,
    )


@router.get("/professionals", response_model=PaginatedResponse[ProfessionalListing])
async def list_professionals(
    country: Optional[CountryCode] = None,
    city: Optional[str] = None,
    service: Optional[str] = None,
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db)
):
    query = db.query(Profile, ProfessionalProfile).join(
        ProfessionalProfile, ProfessionalProfile.profile_id == Profile.id
    ).filter(
        Profile.role == UserRole.PROFESSIONAL,
        Profile.is_active == True,
        ProfessionalProfile.is_listed == True
    )
    if country:
        query = query.filter(Profile.country == country)
    if city:
        query = query.filter(ProfessionalProfile.city.ilike(city))
    if min_rating is not None:
        query = query.filter(ProfessionalProfile.rating >= min_rating)

    rows = query.order_by(ProfessionalProfile.rating.desc(), ProfessionalProfile.review_count.desc()).all()

    # primary_services is a JSON list
    if service:
        needle = service.lower()
        rows = [
            (profile, pro) for profile, pro in rows
            if any(needle in s.lower() for s in (pro.primary_services or []))
        ]

    return paginate_list([_listing(profile, pro) for profile, pro in rows], page, page_size)


@router.get("/professionals/{professional_id}")
async def get_professional(professional_id: int, db: Session = Depends(get_db)):
    row = db.query(Profile, ProfessionalProfile).join(
        ProfessionalProfile, ProfessionalProfile.profile_id == Profile.id
    ).filter(
        Profile.id == professional_id,
        Profile.is_active == True,
        ProfessionalProfile.is_listed == True
    ).first()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Professional not found")

    profile, pro = row
    reviews: List[Review] = db.query(Review).filter(
        Review.professional_id == professional_id,
        Review.is_hidden == False
    ).order_by(Review.created_at.desc()).limit(20).all()

    return {
        "professional": _listing(profile, pro),
        "reviews": [ReviewResponse.model_validate(r) for r in reviews],
    }
