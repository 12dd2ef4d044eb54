# WhereAbout — Database Models
# Import all models here for SQLAlchemy discovery

from whereabout.models.event import Event                           # noqa
from whereabout.models.event_registration import EventRegistration  # noqa
from whereabout.models.ticket import Ticket                         # noqa
from whereabout.models.ticket_entry import TicketEntry              # noqa
