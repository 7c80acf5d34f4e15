"""Field names of the Airtable base, grouped by table."""

# Quotes table
QUOTE_NUMBER = "מספר הצעה"
QUOTE_CUSTOMER_NAME = "שם לקוח"
QUOTE_CONTACT_PHONE = "מספר טלפון איש קשר"
QUOTE_CONTACT = "איש קשר"
QUOTE_DELIVERY_DATE = "תאריך אספקה"
QUOTE_PACKAGE_QUANTITY = "כמות מארזים"
QUOTE_BUDGET_PER_PACKAGE = "תקציב למארז"
QUOTE_AGENT_COMMISSION = "עמלת סוכן"
QUOTE_AGENT = "סוכן"
QUOTE_CARD = "גלוית לקוח"
QUOTE_STICKER = "מדבקת לקוח"
QUOTE_STATUS = "סטאטוס"
QUOTE_OPPORTUNITIES = "הזדמנויות מכירה"
QUOTE_OPTIONS = "אופציות להצעת מחיר 4"

# Opportunities table
OPP_FULL_NAME = "שם מלא"
OPP_EMAIL = "Email"
OPP_PHONE = "טלפון"
OPP_COMPANY_NAME = "שם חברה"
OPP_LINKED_COMPANY = "חברה מקושרת"
OPP_DELIVERY_DATE = "תאריך אספקה מבוקש"
OPP_DELIVERY_TIME = "שעת אספקה"
OPP_PACKAGE_QUANTITY = "כמות מארזים"
OPP_BUDGET = "תקציב"
OPP_BUDGET_BEFORE_VAT = 'תקציב למארז לפני מע"מ'
OPP_BUDGET_WITH_VAT = "תקציב למארז כולל מעמ"
OPP_INCLUDE_VAT = 'מחירים כולל מע"מ'
OPP_INCLUDE_SHIPPING = "תקציב כולל משלוח"
OPP_AGENT = "סוכן"
OPP_DELIVERY_ADDRESS = "כתובת אספקה"
OPP_DISTRIBUTION = "הפצה"
OPP_CUSTOMER_NOTES = "דגשים מהלקוח"
OPP_PREFERENCES = "דגשים והעדפות"
OPP_CELEBRATION = "מה חוגגים"
OPP_RECIPIENTS = "מי מקבל את המתנות"
OPP_CARD = "גלוית לקוח"
OPP_STICKER = "מדבקת לקוח"
OPP_PREFERRED_PACKAGING = "סוג אריזה מועדף"
OPP_OCCASION = "מועד"

# Options table
OPTION_TITLE = "כותרת אופציה"
OPTION_LETTER = "Option Letter"
OPTION_NUMBER = "מספר אופציה"
OPTION_QUOTE_LINK = "קישור להצעת מחיר"
OPTION_CUSTOMER_NAME = "שם לקוח"
OPTION_PRODUCTS = "מוצרים"
OPTION_PACKAGING = "מוצרי אריזה ומיתוג copy"
OPTION_PACKAGE = "שם מארז"
OPTION_PACKAGE_NUMBER = "מספר מארז"
OPTION_PACKAGE_IMAGE = "תמונת מארז"
OPTION_PROFIT_TARGET = "יעד רווחיות"
OPTION_AGENT = "סוכן"
OPTION_AGENT_COMMISSION = "עמלת סוכן %"
OPTION_ADDITIONAL_EXPENSES = "הוצאות נוספות"
OPTION_DELIVERY_COMPANY = "חברת משלוחים"
OPTION_PACKAGING_KIND = "אריזה"
OPTION_UNITS_PER_CARTON = "כמות שנכנסת בקרטון"
OPTION_DELIVERY_BOXES = "כמות קרטונים להובלה"
OPTION_SHIPPING_PRICE = "תמחור משלוח ללקוח"
OPTION_PROJECT_PRICE = 'תמחור לפרויקט לפני מע"מ'
OPTION_STATUS = "סטאטוס"
OPTION_INTERNAL_STATUS = "סטטוס פנימי"

# Products table
PRODUCT_NAME = "מוצר"
PRODUCT_NAME_ALT = "שם מוצר"
PRODUCT_DETAILS = "פירוט"
PRODUCT_SIZE = "גודל"
PRODUCT_MARKETING = "תיאור שיווקי"
PRODUCT_PRICE = "מחיר לפני מעמ"
PRODUCT_TYPE = "סוג מוצר"
PRODUCT_INVENTORY = "מלאי יתר/חסר"
PRODUCT_BOXES_PER_CARTON = "כמות בקרטון"

# Packages table
PACKAGE_NAME = "שם"
PACKAGE_NUMBER = "מספר מארז"
PACKAGE_PRICE = 'מחיר בש"ח'
PACKAGE_PRODUCTS = "מוצרים"
PACKAGE_PACKAGING = "מוצרי מיתוג ואריזה"
PACKAGE_PARALLEL = "מארז מקביל"
PACKAGE_ATTACHMENTS = "Attachments"
PACKAGE_ACTIVE_FORMULA = "{פעיל} = TRUE()"

# Formula and rollup fields the store computes itself; never sent on writes.
COMPUTED_FIELDS = frozenset(
    {
        QUOTE_NUMBER,
        OPP_BUDGET_BEFORE_VAT,
        OPP_BUDGET_WITH_VAT,
        "מחיר עלות",
        "עלות עבודת אריזה",
        "עלות מוצרי אריזה ומיתוג",
        "עלות מוצרים בפועל",
        "תקציב נותר למוצרים",
        "כמות מוצרים",
        "% רווח בפועל למארז",
        "רווח לעסקה בשקלים",
        'סה"כ רווח לעסקה',
        'הכנסה ללא מע"מ',
        "רווח בפועל למארז",
        'תמחור לפרויקט כולל מע"מ',
        'תמחור לפרויקט ללקוח לפני מע"מ',
        'תמחור לפרויקט ללקוח כולל מע"מ',
    }
)


def writable(fields: dict) -> dict:
    return {k: v for k, v in fields.items() if k not in COMPUTED_FIELDS}
