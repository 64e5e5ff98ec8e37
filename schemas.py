"""
Record Schemas

Pydantic models describing the records kept in the document store.
These schemas act as allow-lists: only the fields declared here survive
shaping and merging, everything else in a request body is dropped.

Each record type lives under its own node in the store:
- User -> "users"
- Income -> "income"
- Expense -> "expenses"

Field aliases are the lowercase keys clients send (and, for expenses,
the keys the record is stored under).
"""

from typing import Dict, List, Optional, Type, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr

Amount = Union[StrictInt, StrictFloat, StrictStr]


class Section(BaseModel):
    """Base for flat groups of optional scalar fields."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ---------- Expense categories ----------

class Savings(Section):
    rrsp: Optional[Amount] = None
    investment_savings: Optional[Amount] = Field(None, alias="investment savings")
    long_term_savings: Optional[Amount] = Field(None, alias="long-term savings")
    bonds: Optional[Amount] = None
    others: Optional[Amount] = None


class PaymentObligations(Section):
    credit_card: Optional[Amount] = Field(None, alias="credit card")
    loan: Optional[Amount] = None
    vehicle_lease: Optional[Amount] = Field(None, alias="vehicle lease")
    line_of_credit: Optional[Amount] = Field(None, alias="line of credit")


class Insurance(Section):
    life_insurance: Optional[Amount] = Field(None, alias="life insurance")
    health_insurance: Optional[Amount] = Field(None, alias="health insurance")
    others: Optional[Amount] = None


class Housing(Section):
    rent: Optional[Amount] = None
    rent_insurance: Optional[Amount] = Field(None, alias="rent insurance")
    storage_and_parking: Optional[Amount] = Field(None, alias="storage and parking")
    utilities: Optional[Amount] = None
    maintainance: Optional[Amount] = None


class Utilities(Section):
    phone: Optional[Amount] = None
    internet: Optional[Amount] = None
    water: Optional[Amount] = None
    heat: Optional[Amount] = None
    electricity: Optional[Amount] = None
    cable: Optional[Amount] = None
    others: Optional[Amount] = None


class Personal(Section):
    transportation: Optional[Amount] = None
    clothing: Optional[Amount] = None
    gifts_family: Optional[Amount] = Field(None, alias="gifts -family")
    personal_grooming: Optional[Amount] = Field(None, alias="personal grooming")
    dining_out: Optional[Amount] = Field(None, alias="dining out")
    hobbies: Optional[Amount] = None
    others: Optional[Amount] = None


class Expense(BaseModel):
    """
    Expenses collection schema
    Collection name: "expenses"
    Categories with no recorded field are omitted from the stored document.
    """
    model_config = ConfigDict(populate_by_name=True)

    savings: Optional[Savings] = None
    payment_obligations: Optional[PaymentObligations] = Field(None, alias="payment obligations")
    insurance: Optional[Insurance] = None
    housing: Optional[Housing] = None
    utilities: Optional[Utilities] = None
    personal: Optional[Personal] = None


# Stored category key -> model holding its recognized fields
EXPENSE_CATEGORIES: Dict[str, Type[Section]] = {
    "savings": Savings,
    "payment obligations": PaymentObligations,
    "insurance": Insurance,
    "housing": Housing,
    "utilities": Utilities,
    "personal": Personal,
}


# ---------- Income ----------

class Income(Section):
    """
    Income collection schema
    Collection name: "income"
    Stored keys are camelCase; request keys are the lowercase labels.
    """
    wages: Optional[Amount] = Field(None, description="Primary income, required at creation")
    secondary_income: Optional[Amount] = Field(
        None,
        validation_alias=AliasChoices("secondary income", "secondaryincome"),
        serialization_alias="secondaryIncome",
    )
    interest: Optional[Amount] = None
    support_payment: Optional[Amount] = Field(
        None,
        validation_alias=AliasChoices("support payment", "supportpayment"),
        serialization_alias="supportPayment",
    )
    others: Optional[Amount] = None


# ---------- Users ----------

class Address(Section):
    street: Optional[StrictStr] = None
    suite: Optional[StrictStr] = None
    city: Optional[StrictStr] = None
    zipcode: Optional[Union[StrictStr, StrictInt]] = None


class User(Section):
    """
    Users collection schema
    Collection name: "users"
    """
    name: Optional[str] = Field(None, description="Full name")
    username: Optional[str] = Field(None, description="Unique handle")
    email: Optional[str] = Field(None, description="Email address")
    address: Optional[Address] = Field(None, description="Postal address, always stored")


# ---------- Responses ----------

class RecordAck(BaseModel):
    id: Union[int, str]
    message: str


def field_keys(model: Type[BaseModel]) -> List[str]:
    """Keys a model's fields are stored under."""
    return [f.serialization_alias or f.alias or name for name, f in model.model_fields.items()]
