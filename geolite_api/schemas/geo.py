from pydantic import BaseModel, Field
from typing import Optional


class GeoRecord(BaseModel):
    ip_address: str
    network: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = Field(None, description="Most specific subdivision name")
    region_code: Optional[str] = None
    country: Optional[str] = None
    country_code: Optional[str] = Field(None, description="ISO 3166-1 alpha-2 code")
    continent: Optional[str] = None
    continent_code: Optional[str] = None
    postal_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy_radius: Optional[int] = Field(None, description="Radius in kilometers")
    time_zone: Optional[str] = None
    is_in_european_union: Optional[bool] = None


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
