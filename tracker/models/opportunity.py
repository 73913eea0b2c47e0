from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, Numeric, ForeignKey, JSON
from sqlalchemy.orm import relationship
from tracker.database import Base
from tracker.models.company import new_id


class Opportunity(Base):
    __tablename__ = 'opportunities'

    id = Column(String(36), primary_key=True, default=new_id)
    parent_id = Column(String(36), nullable=True)
    company_id = Column(String(36), ForeignKey('companies.id', ondelete='SET NULL'), nullable=True, index=True)
    # Denormalized copy of the company name, kept in sync on selection
    company = Column(String(255), nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    phase = Column(Integer, nullable=False, default=0, index=True)
    # Free text; known values are listed in STATUSES
    status = Column(String(50), nullable=False, default='planned')
    estimated_som = Column(Numeric(15, 2), nullable=True)
    som_currency = Column(String(3), nullable=True, default='USD')
    next_steps = Column(Text, nullable=True)
    # ISO YYYY-MM-DD
    target_date = Column(String(10), nullable=True)
    messaging_indicator = Column(String(10), nullable=True)
    campaign_indicator = Column(String(10), nullable=True)
    pricing_indicator = Column(String(10), nullable=True)
    sales_alignment_indicator = Column(String(10), nullable=True)
    # List of url strings
    demo_links = Column(JSON, nullable=True)
    # List of {"name": ..., "path": ...} references into file storage
    attachments = Column(JSON, nullable=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    company_ref = relationship("Company", back_populates="opportunities")

    PHASES = [
        (0, 'Phase 0', 'Identification', '2-4 weeks'),
        (1, 'Phase 1', 'Discovery', '4-6 weeks'),
        (2, 'Phase 2', 'PoC', '6-8 weeks'),
        (3, 'Phase 3', 'MVP Pilot', '8-12 weeks'),
        (4, 'Phase 4', 'Full Deployment', 'Ongoing'),
    ]

    PHASE_NUMBERS = [p[0] for p in PHASES]

    STATUSES = [
        ('done', 'Done'),
        ('in_progress', 'In-Progress'),
        ('paused', 'Paused'),
        ('planned', 'Planned'),
        ('not_go', 'Not-Go'),
    ]

    STATUS_LABELS = dict(STATUSES)

    INDICATORS = ['green', 'amber', 'red']

    # (column, letter, label)
    INDICATOR_FIELDS = [
        ('messaging_indicator', 'M', 'Messaging'),
        ('campaign_indicator', 'C', 'Campaign'),
        ('pricing_indicator', 'P', 'Pricing'),
        ('sales_alignment_indicator', 'S', 'Sales Alignment'),
    ]

    COLUMN_DESCRIPTIONS = {
        'phase': ('Phase', 'Current stage in the opportunity lifecycle: Phase 0 (Identification), Phase 1 (Discovery), Phase 2 (PoC), Phase 3 (MVP Pilot), Phase 4 (Full Deployment)'),
        'company': ('Company', 'The portfolio company associated with this opportunity'),
        'name': ('Opportunity', 'Name or title of the initiative or project'),
        'estimated_som': ('1-yr SOM', 'Estimated 1-year Serviceable Obtainable Market - the projected revenue potential within the first year'),
        'status': ('Status', 'Current status: Done (complete), In-Progress (active work), Paused (on hold), Planned (scheduled), Not-Go (rejected)'),
        'messaging': ('Messaging', 'Readiness of marketing messaging and value proposition. Green = Ready, Amber = In Progress, Red = Needs Attention'),
        'campaign': ('Campaign', 'Marketing campaign readiness and execution status. Green = Ready, Amber = In Progress, Red = Needs Attention'),
        'pricing': ('Pricing', 'Pricing strategy and model readiness. Green = Ready, Amber = In Progress, Red = Needs Attention'),
        'sales': ('Sales Alignment', 'Sales team readiness and alignment with the opportunity. Green = Ready, Amber = In Progress, Red = Needs Attention'),
        'next_steps': ('Next Steps', 'Immediate action items or next milestones for this opportunity'),
        'target_date': ('Target Date', 'Target completion or milestone date for the current phase'),
        'demo_links': ('Demo', 'Demo links and recordings for this opportunity'),
        'attachments': ('Files', 'Attached files, screenshots, and documents'),
    }

    # Columns the edit flow may write, one at a time
    EDITABLE_FIELDS = {
        'name', 'description', 'phase', 'status', 'estimated_som', 'som_currency',
        'next_steps', 'target_date', 'company_id', 'company',
        'messaging_indicator', 'campaign_indicator', 'pricing_indicator',
        'sales_alignment_indicator', 'demo_links', 'attachments', 'sort_order',
        'parent_id',
    }

    @property
    def company_name(self):
        """Joined company name, falling back to the denormalized copy."""
        if self.company_ref is not None:
            return self.company_ref.name
        return self.company

    def __repr__(self):
        return f"<Opportunity {self.name}>"
