"""
Tomorrow People — Community Backend
====================================
Events with RSVP and waitlists, a member directory, swipe-to-vote ideas,
sections with custom profile fields, and channel messaging, served as a
JSON API for the web frontend.

Package layout::

    tomorrow_people/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Enumerated values shared by services and routes
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   ├── models.py      # All ORM models
    │   └── seed.py        # Default channel categories
    ├── engine/
    │   ├── event_status.py     # Event lifecycle transitions
    │   ├── field_validation.py # Section profile field rules
    │   ├── presence.py         # Typing indicator summaries
    │   └── voting.py           # Vote tallies and percentages
    ├── services/
    │   ├── profile_service.py  # Profiles, links, directory
    │   ├── event_service.py    # Events, cohosts, comments, invitations
    │   ├── rsvp_service.py     # RSVP + waitlist transitions
    │   ├── idea_service.py     # Ideas, votes, comment threads
    │   ├── section_service.py  # Sections, membership, invitations
    │   ├── field_service.py    # Section profile fields + member data
    │   ├── channel_service.py  # Channels, members, moderation, DMs
    │   ├── message_service.py  # Messages, threads, reactions, typing
    │   └── upload_service.py   # Image and attachment storage
    └── api/
        ├── main.py        # FastAPI app
        ├── auth.py        # Identity-provider JWT → profile
        └── routes/        # One router per feature area
"""

__version__ = "0.1.0"
