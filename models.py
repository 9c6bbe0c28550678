"""
Database models for StreamTrack
"""

from datetime import datetime

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class Service(db.Model):  # type: ignore[name-defined]
    """Streaming provider - fixed small set, seeded once"""

    __tablename__ = "services"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    slug = db.Column(db.String(20), unique=True, nullable=False)  # Matches provider short codes, e.g. 'nfx'
    logo_url = db.Column(db.String(500))

    # Relationships
    logs = db.relationship("AvailabilityLog", backref="service", lazy="dynamic")

    # (name, slug) pairs seeded on first start
    DEFAULTS = [
        ("Netflix", "nfx"),
        ("Amazon Prime Video", "amp"),
        ("Hulu", "hlu"),
        ("Disney+", "dnp"),
        ("HBO Max", "hbm"),
        ("Apple TV+", "atp"),
        ("Peacock", "pck"),
        ("Paramount+", "pmp"),
    ]

    @staticmethod
    def seed_defaults():
        """Insert any default services that are missing. Returns number added."""
        existing = {slug for (slug,) in db.session.query(Service.slug).all()}
        added = 0
        for name, slug in Service.DEFAULTS:
            if slug not in existing:
                db.session.add(Service(name=name, slug=slug))
                added += 1
        if added:
            db.session.commit()
        return added

    def to_dict(self):
        return {"id": self.id, "name": self.name, "slug": self.slug, "logo_url": self.logo_url}

    def __repr__(self):
        return f"<Service {self.slug}>"


class Title(db.Model):  # type: ignore[name-defined]
    """Tracked movie or show.

    ``last_checked`` is the only column the availability scheduler mutates;
    the check queue is derived from it on every tick.
    """

    __tablename__ = "titles"

    TYPE_MOVIE = "movie"
    TYPE_TV = "tv"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(10), nullable=False, default=TYPE_MOVIE)  # movie, tv
    external_id = db.Column(db.String(100))
    justwatch_id = db.Column(db.String(50))  # NULL = unresolved, never checked
    full_path = db.Column(db.String(255))  # e.g. '/us/movie/inception'
    poster_url = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    last_checked = db.Column(db.DateTime, index=True)

    # Relationships
    logs = db.relationship("AvailabilityLog", backref="title", lazy="dynamic")

    __table_args__ = (db.CheckConstraint("type IN ('movie', 'tv')", name="ck_titles_type"),)

    @property
    def is_resolved(self):
        return bool(self.justwatch_id)

    @staticmethod
    def checkable():
        """Query for titles with a JustWatch ID (the ones a check can look up)"""
        return Title.query.filter(Title.justwatch_id.isnot(None), Title.justwatch_id != "")

    def mark_checked(self, when):
        """Record a successful availability check (caller commits)"""
        self.last_checked = when

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "external_id": self.external_id,
            "justwatch_id": self.justwatch_id,
            "full_path": self.full_path,
            "poster_url": self.poster_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "last_checked": self.last_checked.isoformat() if self.last_checked else None,
        }

    def __repr__(self):
        return f"<Title {self.name} ({self.type})>"


class AvailabilityLog(db.Model):  # type: ignore[name-defined]
    """Append-only fact: on check_date, title was (or was not) available on service"""

    __tablename__ = "availability_logs"

    id = db.Column(db.Integer, primary_key=True)
    title_id = db.Column(db.Integer, db.ForeignKey("titles.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False, index=True)
    check_date = db.Column(db.Date, nullable=False, index=True)
    is_available = db.Column(db.Boolean, nullable=False)

    @staticmethod
    def record(title_id, service_id, check_date, is_available):
        """Append one log row (caller commits)"""
        log = AvailabilityLog(
            title_id=title_id, service_id=service_id, check_date=check_date, is_available=bool(is_available)
        )
        db.session.add(log)
        return log

    def __repr__(self):
        state = "available" if self.is_available else "unavailable"
        return f"<AvailabilityLog title={self.title_id} service={self.service_id} {self.check_date} {state}>"
