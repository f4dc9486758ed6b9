"""
Static reference data: airports, airlines, aircraft and the city lookup table
used by the chatbot's entity extractor.
"""

from typing import Dict, List

AIRPORTS: Dict[str, Dict[str, str]] = {
    # North America
    'JFK': {'code': 'JFK', 'name': 'John F. Kennedy International Airport', 'city': 'New York', 'country': 'United States'},
    'LAX': {'code': 'LAX', 'name': 'Los Angeles International Airport', 'city': 'Los Angeles', 'country': 'United States'},
    'ORD': {'code': 'ORD', 'name': "Chicago O'Hare International Airport", 'city': 'Chicago', 'country': 'United States'},
    'MIA': {'code': 'MIA', 'name': 'Miami International Airport', 'city': 'Miami', 'country': 'United States'},
    'YYZ': {'code': 'YYZ', 'name': 'Toronto Pearson International Airport', 'city': 'Toronto', 'country': 'Canada'},
    # Europe
    'LHR': {'code': 'LHR', 'name': 'London Heathrow Airport', 'city': 'London', 'country': 'United Kingdom'},
    'CDG': {'code': 'CDG', 'name': 'Charles de Gaulle Airport', 'city': 'Paris', 'country': 'France'},
    'FRA': {'code': 'FRA', 'name': 'Frankfurt Airport', 'city': 'Frankfurt', 'country': 'Germany'},
    'AMS': {'code': 'AMS', 'name': 'Amsterdam Airport Schiphol', 'city': 'Amsterdam', 'country': 'Netherlands'},
    'FCO': {'code': 'FCO', 'name': 'Leonardo da Vinci International Airport', 'city': 'Rome', 'country': 'Italy'},
    # Asia Pacific
    'NRT': {'code': 'NRT', 'name': 'Narita International Airport', 'city': 'Tokyo', 'country': 'Japan'},
    'SIN': {'code': 'SIN', 'name': 'Singapore Changi Airport', 'city': 'Singapore', 'country': 'Singapore'},
    'HKG': {'code': 'HKG', 'name': 'Hong Kong International Airport', 'city': 'Hong Kong', 'country': 'Hong Kong'},
    'SYD': {'code': 'SYD', 'name': 'Sydney Kingsford Smith Airport', 'city': 'Sydney', 'country': 'Australia'},
    'ICN': {'code': 'ICN', 'name': 'Incheon International Airport', 'city': 'Seoul', 'country': 'South Korea'},
    # India
    'DEL': {'code': 'DEL', 'name': 'Indira Gandhi International Airport', 'city': 'Delhi', 'country': 'India'},
    'BOM': {'code': 'BOM', 'name': 'Chhatrapati Shivaji Maharaj International Airport', 'city': 'Mumbai', 'country': 'India'},
    'BLR': {'code': 'BLR', 'name': 'Kempegowda International Airport', 'city': 'Bengaluru', 'country': 'India'},
    'HYD': {'code': 'HYD', 'name': 'Rajiv Gandhi International Airport', 'city': 'Hyderabad', 'country': 'India'},
    'MAA': {'code': 'MAA', 'name': 'Chennai International Airport', 'city': 'Chennai', 'country': 'India'},
    'CCU': {'code': 'CCU', 'name': 'Netaji Subhas Chandra Bose International Airport', 'city': 'Kolkata', 'country': 'India'},
    'PNQ': {'code': 'PNQ', 'name': 'Pune Airport', 'city': 'Pune', 'country': 'India'},
    # Middle East & Africa
    'DXB': {'code': 'DXB', 'name': 'Dubai International Airport', 'city': 'Dubai', 'country': 'United Arab Emirates'},
    'DOH': {'code': 'DOH', 'name': 'Hamad International Airport', 'city': 'Doha', 'country': 'Qatar'},
    'CAI': {'code': 'CAI', 'name': 'Cairo International Airport', 'city': 'Cairo', 'country': 'Egypt'},
    'JNB': {'code': 'JNB', 'name': 'O.R. Tambo International Airport', 'city': 'Johannesburg', 'country': 'South Africa'},
}

AIRLINES: List[Dict[str, str]] = [
    {'code': 'AA', 'name': 'American Airlines'},
    {'code': 'DL', 'name': 'Delta Air Lines'},
    {'code': 'UA', 'name': 'United Airlines'},
    {'code': 'WN', 'name': 'Southwest Airlines'},
    {'code': 'BA', 'name': 'British Airways'},
    {'code': 'LH', 'name': 'Lufthansa'},
    {'code': 'EK', 'name': 'Emirates'},
    {'code': 'AF', 'name': 'Air France'},
]

AIRCRAFT = ['Boeing 737', 'Boeing 787', 'Airbus A320', 'Airbus A350', 'Boeing 777', 'Airbus A380']

POPULAR_DESTINATIONS: List[Dict[str, str]] = [
    {'code': 'NYC', 'name': 'New York', 'country': 'United States'},
    {'code': 'LAX', 'name': 'Los Angeles', 'country': 'United States'},
    {'code': 'LHR', 'name': 'London', 'country': 'United Kingdom'},
    {'code': 'CDG', 'name': 'Paris', 'country': 'France'},
    {'code': 'NRT', 'name': 'Tokyo', 'country': 'Japan'},
    {'code': 'DXB', 'name': 'Dubai', 'country': 'United Arab Emirates'},
]

# Free-text city name -> airport code, consulted by the entity extractor
CITY_TO_AIRPORT: Dict[str, str] = {
    'new york': 'JFK',
    'los angeles': 'LAX',
    'chicago': 'ORD',
    'london': 'LHR',
    'paris': 'CDG',
    'tokyo': 'NRT',
    'dubai': 'DXB',
    'singapore': 'SIN',
    'delhi': 'DEL',
    'mumbai': 'BOM',
    'bengaluru': 'BLR',
    'bangalore': 'BLR',
    'hyderabad': 'HYD',
    'chennai': 'MAA',
    'kolkata': 'CCU',
    'pune': 'PNQ',
}

CLASS_TYPES = ('economy', 'premium', 'business', 'first')

CLASS_DISPLAY_NAMES = {
    'economy': 'Economy',
    'premium': 'Premium Economy',
    'business': 'Business',
    'first': 'First Class',
}


def airline_logo_url(code: str) -> str:
    return f"https://images.kiwi.com/airlines/64/{code}.png"


def airport_name(code: str) -> str:
    airport = AIRPORTS.get(code)
    return airport['name'] if airport else f"{code} Airport"


def airport_city(code: str) -> str:
    if code == 'NYC':
        return 'New York'
    airport = AIRPORTS.get(code)
    return airport['city'] if airport else code


def airport_country(code: str) -> str:
    if code == 'NYC':
        return 'United States'
    airport = AIRPORTS.get(code)
    return airport['country'] if airport else 'Unknown'
