"""Field, farm and user models (owned by the farm-management application)."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Float, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from ..database import Base


class User(Base):
    """Report recipient."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    organization = Column(String(255), nullable=True)

    def __repr__(self):
        return f"<User {self.id} {self.email}>"


class Farm(Base):
    """A farm holding one or more fields."""

    __tablename__ = "farms"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    farm_name = Column(String(255), nullable=False)
    farmer_name = Column(String(255), nullable=True)
    phone_number = Column(String(50), nullable=True)

    # Infrastructure (Yes/No as captured on the farm form)
    backup_power_available = Column(String(10), nullable=True)
    fire_guard_present = Column(String(10), nullable=True)
    irrigation_infrastructure_available = Column(String(10), nullable=True)
    climate_zone = Column(String(100), nullable=True)

    fields = relationship("Field", back_populates="farm")

    def __repr__(self):
        return f"<Farm {self.id} {self.farm_name}>"


class Field(Base):
    """A cropped field."""

    __tablename__ = "fields"

    id = Column(Integer, primary_key=True, index=True)
    farm_id = Column(Integer, ForeignKey("farms.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    field_name = Column(String(255), nullable=True)

    # Crop
    crop_type = Column(String(100), nullable=True)
    variety = Column(String(100), nullable=True)
    field_size = Column(Float, nullable=True)  # hectares
    soil_type = Column(String(100), nullable=True)
    planting_date = Column(Date, nullable=True)
    expected_harvest_date = Column(Date, nullable=True)
    current_growth_stage = Column(String(100), nullable=True)
    irrigation_method = Column(String(100), nullable=True)

    # Fertilizer (amounts in kg/ha)
    basal_fertilizer = Column(String(100), nullable=True)
    basal_fertilizer_amount = Column(Float, nullable=True)
    top_dressing = Column(String(100), nullable=True)
    top_dressing_amount = Column(Float, nullable=True)

    # Field health
    pest_infestation = Column(String(10), nullable=True)  # Yes/No
    pest_infestation_level = Column(String(20), nullable=True)  # None/Low/Medium/High
    pest_control = Column(String(255), nullable=True)
    signs_of_diseases = Column(String(10), nullable=True)  # Yes/No
    disease_occurrence = Column(Boolean, default=False)
    weed_pressure = Column(String(20), nullable=True)  # Low/Medium/High

    # Weather damage and losses
    drought_affected = Column(Boolean, default=False)
    flood_affected = Column(Boolean, default=False)
    hail_affected = Column(Boolean, default=False)
    loss_occurred_current_season = Column(Boolean, default=False)
    loss_percentage = Column(Float, nullable=True)
    last_loss_area = Column(Float, nullable=True)  # hectares lost last season
    last_loss_cause = Column(Text, nullable=True)

    # Yields
    last_yield = Column(Float, nullable=True)
    last_yield_unit = Column(String(50), nullable=True)
    expected_yield_per_hectare = Column(Float, nullable=True)
    actual_yield_per_hectare = Column(Float, nullable=True)

    # Location
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    farm = relationship("Farm", back_populates="fields")
    user = relationship("User")

    def __repr__(self):
        return f"<Field {self.id} {self.crop_type} ({self.field_size} ha)>"
