"""
Selector catalog for the storefront.
Each tuple is an ordered strategy list: semantic role queries first, then
structural CSS heuristics, then text scans.
"""

import re

from merch_bot.dom.strategies import css, pattern, role, text

# ==========================================
# CONSENT
# ==========================================

CONSENT_ACCEPT = (
    css('#onetrust-accept-btn-handler'),
    css('#CybotCookiebotDialogBodyLevelButtonLevelOptinAllowAll'),
    css('button:has-text("Accept All")'),
    css('button:has-text("Accept Cookies")'),
    css('button:has-text("Accept")'),
    css('button:has-text("Allow All")'),
    css('button:has-text("Allow")'),
    css('button:has-text("I Accept")'),
    css('button:has-text("Agree")'),
    css('button:has-text("Got it")'),
    css('#accept-cookies, #cookie-accept, .accept-cookies, .cookie-accept, .onetrust-accept-btn'),
    css('[aria-label*="accept" i][aria-label*="cookie" i]'),
    css('[class*="cookie"][class*="accept"], [class*="consent"][class*="accept"]'),
    css('[role="dialog"] button:has-text("Accept"), [role="alertdialog"] button:has-text("Accept")'),
)

CONSENT_DECLINE = (
    css('#onetrust-reject-all-handler'),
    css('button:has-text("Reject All")'),
    css('button:has-text("Reject")'),
    css('button:has-text("Decline")'),
    css('button:has-text("Only Essential")'),
    css('button:has-text("Necessary Only")'),
)

# ==========================================
# SEARCH & NAVIGATION
# ==========================================

SEARCH_TRIGGER = (
    role('button', pattern('search')),
    css('[aria-label*="search" i]'),
    css('.search-icon, .icon-search, [class*="search"][class*="icon"]'),
    css('a[href*="search"], button[data-action*="search"]'),
)

SEARCH_INPUT = (
    role('searchbox'),
    css('input[type="search"]'),
    css('input[placeholder*="search" i]'),
    css('input[name*="search" i]'),
    css('[data-testid*="search"] input'),
    css('.search-input, .search-field, #search'),
)

SEARCH_SUBMIT = (
    role('button', pattern('search')),
    css('button[type="submit"][aria-label*="search" i]'),
    css('.search-button, .search-submit'),
)

NAV_ALL_PRODUCTS = (
    role('link', pattern('all products|view all|shop all')),
    role('link', pattern('^shop$')),
    css('nav a:has-text("Shop"), header a:has-text("Shop")'),
    css('a[href*="/collections/all"], a[href*="/collections"]'),
)

CATEGORY_MENU = (
    css('header a, nav a', has_text=pattern('^categories$')),
    role('link', pattern('categories'), within='header'),
    role('link', pattern('categories'), within='nav'),
    css('a:has-text("CATEGORIES")'),
    css('[class*="header"] a:has-text("Categories"), [class*="nav"] a:has-text("Categories")'),
)


def game_link_strategies(game: str):
    """Links to one game category, dropdown entries first"""
    escaped = re.escape(game)
    return (
        role('link', pattern(f'^{escaped}$'), within='[class*="dropdown"], [class*="submenu"], [class*="menu"]'),
        css(f'a:has-text("{game}")', within='[class*="dropdown"], [class*="submenu"]'),
        role('link', pattern(escaped), within='header, nav'),
        css(f'header a:has-text("{game}"), nav a:has-text("{game}")'),
        role('link', pattern(escaped)),
    )


LOADER = (
    css('.loading, .spinner, .loader, [class*="loading"], [class*="spinner"]'),
    css('[aria-busy="true"], [data-loading="true"]'),
)

# ==========================================
# PRODUCT LISTING
# ==========================================

PRODUCT_CARD = (
    css('.product-card, .product-item, .product-tile, [class*="product-card"]'),
    css('[data-testid="product-card"], [data-product-id]'),
    css('article[class*="product"], div[class*="product"][class*="card"]'),
    css('.grid-item, .collection-item'),
)

PRODUCT_TITLE_SELECTORS = (
    '.product-card__title',
    '.product-title',
    '.product-name',
    '[class*="product"][class*="title"]',
    '[class*="product"][class*="name"]',
    'h2',
    'h3',
    'h4',
    'a[href*="/products/"]',
)

PRODUCT_LINK = (
    css('a[href*="/products/"]'),
    css('.product-card__link, [class*="product"][class*="link"]'),
    css('a'),
)

LOAD_MORE = (
    role('button', pattern('load more|show more|view more')),
    css('button:has-text("Load More"), button:has-text("Show More")'),
    css('.load-more, .show-more, [class*="load-more"]'),
    role('link', pattern('^next$')),
    css('.pagination-next, .next-page, a[rel="next"]'),
)

# ==========================================
# PRODUCT PAGE
# ==========================================

SOLD_OUT = (
    css('.sold-out, .out-of-stock, [class*="sold-out"], button:has-text("Sold Out")'),
    css('button[disabled]:has-text("Out of Stock"), .unavailable'),
)

SOLD_OUT_TEXT = re.compile(r'sold out|out of stock|unavailable', re.IGNORECASE)

ADD_BUTTON_LABEL = (
    css('form[action*="/cart/add"] button[type="submit"], button[name="add"], #AddToCart, #add-to-cart'),
    css('.add-to-cart, [class*="add-to-cart"], [data-testid*="add-to-cart"]'),
)

QUANTITY_INPUT = (
    role('spinbutton', pattern('quantity')),
    css('input[name="quantity"], input[type="number"][name*="qty"]'),
    css('.quantity-input, .qty-input, [class*="quantity"] input'),
    css('input[id*="quantity"], input[data-quantity]'),
)

QUANTITY_INCREASE = (
    role('button', pattern(r'increase|plus|\+')),
    css('button[aria-label*="increase" i]'),
    css('.quantity-plus, .qty-plus, .increase-qty, [class*="plus"]'),
)

ADD_TO_CART = (
    role('button', pattern('add to cart|add to bag')),
    css('button[type="submit"]:has-text("Add")'),
    css('button:has-text("Add to Cart"), button:has-text("Add to Bag")'),
    css('.add-to-cart, .addtocart, [class*="add-to-cart"], [class*="addToCart"]'),
    css('button[name="add"], button[data-action="add-to-cart"]'),
    css('[data-testid*="add-to-cart"], [data-testid*="addToCart"]'),
    css('form[action*="/cart/add"] button[type="submit"]'),
    css('#AddToCart, #add-to-cart'),
    # Lower priority equivalents
    role('button', pattern('buy now|buy it now')),
    css('.buy-now, .buy-it-now, button:has-text("Buy Now")'),
    role('button', pattern('pre-order|preorder')),
    css('button:has-text("Pre-Order"), button:has-text("Preorder")'),
    css('.preorder, .pre-order, [class*="preorder"], [class*="pre-order"]'),
    css('[data-testid*="preorder"], [data-action*="preorder"]'),
)

ADDED_CONFIRMATION = (
    css(':text("added to cart"), :text("added to bag")'),
    css('.cart-notification, .add-to-cart-success, [class*="cart-success"]'),
    css('[role="alert"]:has-text("added"), [class*="notification"]:has-text("cart")'),
    css('.cart-drawer, .cart-sidebar, .mini-cart, [class*="cart-drawer"]'),
)

# ==========================================
# PURCHASE LIMITS
# ==========================================

PURCHASE_LIMIT_PATTERNS = (
    re.compile(r'limit', re.IGNORECASE),
    re.compile(r'maximum', re.IGNORECASE),
    re.compile(r'already (purchased|bought|ordered|in your cart)', re.IGNORECASE),
    re.compile(r'\b(one|1) per\b', re.IGNORECASE),
    re.compile(r'cannot add more', re.IGNORECASE),
)

PURCHASE_LIMIT_MESSAGE = (
    css('.limit-error, .purchase-limit, [class*="limit"]'),
    css('[class*="error"]:has-text("limit"), [class*="error"]:has-text("maximum")'),
    css('[role="alert"]:has-text("limit"), [role="alert"]:has-text("quantity")'),
    css(':text("limit reached"), :text("limited to"), :text("already purchased"), :text("one per")'),
    css(':text("cannot add more"), :text("max quantity"), :text("per customer")'),
)

ALERT_CONTAINERS = (
    css('[role="alert"]'),
    css('.error, .error-message, [class*="error"]'),
    css('[class*="notification"], [class*="toast"], [class*="message"]'),
)

# ==========================================
# CART
# ==========================================

CART_ICON = (
    role('link', pattern('cart|bag')),
    css('[aria-label*="cart" i], [aria-label*="bag" i]'),
    css('a[href*="/cart"], .cart-icon, .cart-link, [class*="cart-icon"]'),
    css('header [class*="cart"], nav [class*="cart"]'),
)

CART_DRAWER = (
    css('.cart-drawer, .cart-sidebar, .mini-cart, [class*="cart-drawer"]'),
    css('[role="dialog"]:has-text("Cart"), [class*="drawer"]:has-text("Cart")'),
)

CART_CLOSE = (
    css('.cart-drawer__close, .drawer__close, .close-drawer'),
    role('button', pattern('close')),
    css('[aria-label*="close" i], .drawer__overlay'),
)

CART_ITEM = (
    css('.cart-item, .cart-product, .line-item, [class*="cart-item"]'),
    css('[data-testid*="cart-item"], .cart-drawer__item'),
)

CART_PRODUCT_LIKE = (
    css('[class*="cart"] [class*="product"], [class*="drawer"] [class*="product"]'),
    css('[class*="cart"] img[alt]:not([alt=""])'),
)

CART_EMPTY = (
    css('.cart-empty, .empty-cart'),
    css(':text("cart is empty"), :text("bag is empty"), :text("no items in your cart")'),
)

CART_EMPTY_TEXT = re.compile(r'cart is empty|bag is empty|no items in (your )?(cart|bag)', re.IGNORECASE)

CART_QUANTITY_INPUT = (
    css('input[type="number"]'),
    css('input[name*="quantity"]'),
    css('.cart-quantity input'),
)

CART_REMOVE = (
    role('button', pattern('remove')),
    css('.cart-remove, .remove-item, button[aria-label*="remove" i]'),
    css('a:has-text("Remove"), button:has-text("Remove")'),
)

CHECKOUT_BUTTON = (
    role('button', pattern('checkout|check out')),
    role('link', pattern('checkout|check out')),
    css('button:has-text("Checkout"), a:has-text("Checkout")'),
    css('.checkout-button, .btn-checkout, [class*="checkout"][class*="btn"]'),
    css('a[href*="/checkout"], button[data-action="checkout"]'),
    css('[data-testid*="checkout"], #checkout'),
)

# ==========================================
# CHECKOUT FORM
# ==========================================

EMAIL_INPUT = (
    role('textbox', pattern('email')),
    css('input[type="email"]'),
    css('input[name="email"], input[name*="email"]'),
    css('input[autocomplete="email"]'),
    css('#email, #checkout_email, [data-testid*="email"]'),
)

PHONE_INPUT = (
    role('textbox', pattern('phone')),
    css('input[type="tel"]'),
    css('input[name="phone"], input[name*="phone"]'),
    css('input[autocomplete="tel"]'),
)

FIRST_NAME_INPUT = (
    role('textbox', pattern('first name')),
    css('input[name="firstName"], input[name="first_name"]'),
    css('input[name*="shipping"][name*="first"]'),
    css('input[autocomplete="given-name"]'),
)

LAST_NAME_INPUT = (
    role('textbox', pattern('last name')),
    css('input[name="lastName"], input[name="last_name"]'),
    css('input[name*="shipping"][name*="last"]'),
    css('input[autocomplete="family-name"]'),
)

ADDRESS1_INPUT = (
    role('textbox', pattern('^(address|street)')),
    css('input[name="address1"], input[name="address_1"]'),
    css('input[name*="shipping"][name*="address1"]'),
    css('input[autocomplete="address-line1"]'),
)

ADDRESS2_INPUT = (
    role('textbox', pattern('apartment|suite|unit')),
    css('input[name="address2"], input[name="address_2"]'),
    css('input[name*="shipping"][name*="address2"]'),
    css('input[autocomplete="address-line2"]'),
)

CITY_INPUT = (
    role('textbox', pattern('city')),
    css('input[name="city"]'),
    css('input[name*="shipping"][name*="city"]'),
    css('input[autocomplete="address-level2"]'),
)

STATE_SELECT = (
    role('combobox', pattern('state|province|region')),
    css('select[name="state"], select[name="province"]'),
    css('select[name*="shipping"][name*="state"]'),
    css('select[autocomplete="address-level1"]'),
)

STATE_INPUT = (
    css('input[name="state"], input[name="province"]'),
    css('input[autocomplete="address-level1"]'),
)

ZIP_INPUT = (
    role('textbox', pattern('zip|postal')),
    css('input[name="zip"], input[name="postal_code"], input[name="postalCode"]'),
    css('input[name*="shipping"][name*="zip"]'),
    css('input[autocomplete="postal-code"]'),
)

COUNTRY_SELECT = (
    role('combobox', pattern('country')),
    css('select[name="country"], select[name="countryCode"]'),
    css('select[name*="shipping"][name*="country"]'),
    css('select[autocomplete="country"]'),
)

CONTINUE_TO_SHIPPING = (
    role('button', pattern('continue to shipping')),
    css('button:has-text("Continue to shipping")'),
    css('button[type="submit"]:has-text("Continue")'),
)

CONTINUE_TO_PAYMENT = (
    role('button', pattern('continue to payment')),
    css('button:has-text("Continue to payment")'),
    css('button[type="submit"]:has-text("Continue")'),
)

# ==========================================
# DISCOUNT
# ==========================================

DISCOUNT_TOGGLE = (
    css(':text("discount code"), :text("promo code"), :text("coupon")'),
    css('.discount-toggle, [class*="discount"][class*="toggle"]'),
)

DISCOUNT_INPUT = (
    role('textbox', pattern('discount|promo|coupon')),
    css('input[name="discount"], input[name*="discount"]'),
    css('input[name="promo"], input[name*="promo"]'),
    css('input[name="coupon"], input[name*="coupon"]'),
    css('input[placeholder*="discount" i], input[placeholder*="promo" i]'),
    css('#discount-code, #promo-code, [data-testid*="discount"]'),
)

DISCOUNT_APPLY = (
    role('button', pattern('apply')),
    css('button:has-text("Apply")'),
    css('.discount-apply, .promo-apply, [class*="discount"] button'),
)

# ==========================================
# PAYMENT
# ==========================================

PAYMENT_IFRAMES = (
    'iframe[name*="card"]',
    'iframe[src*="stripe"]',
    'iframe[title*="payment" i]',
    'iframe[title*="card" i]',
    'iframe[name*="__privateStripeFrame"]',
)

CARD_NUMBER_INPUT = (
    css('input[name="cardnumber"]'),
    css('input[name="cardNumber"], input[name="number"]'),
    css('input[autocomplete="cc-number"]'),
    css('input[placeholder*="card number" i]'),
    css('#card-number, [data-testid*="card-number"]'),
)

CARD_EXPIRY_INPUT = (
    css('input[name="exp-date"]'),
    css('input[name="expiry"], input[name="exp"]'),
    css('input[autocomplete="cc-exp"]'),
    css('input[placeholder*="MM" i]'),
)

CARD_EXP_MONTH = (
    css('select[name*="month"], select[autocomplete="cc-exp-month"]'),
    css('input[name*="month"], input[autocomplete="cc-exp-month"]'),
)

CARD_EXP_YEAR = (
    css('select[name*="year"], select[autocomplete="cc-exp-year"]'),
    css('input[name*="year"], input[autocomplete="cc-exp-year"]'),
)

CARD_CVV_INPUT = (
    css('input[name="cvv"], input[name="cvc"], input[name="securityCode"]'),
    css('input[autocomplete="cc-csc"]'),
    css('input[placeholder*="CVV" i], input[placeholder*="CVC" i]'),
)

CARD_NAME_INPUT = (
    css('input[name="name"], input[name="cardName"]'),
    css('input[autocomplete="cc-name"]'),
)

PLACE_ORDER = (
    role('button', pattern('place order|complete order|pay now|submit order')),
    css('button:has-text("Place Order"), button:has-text("Complete Order")'),
    css('button:has-text("Pay Now"), button:has-text("Pay")'),
    css('button[type="submit"]:has-text("Order")'),
    css('.place-order, .complete-checkout, [class*="place-order"]'),
    css('[data-testid*="place-order"], [data-testid*="submit-order"]'),
)

ORDER_CONFIRMATION = (
    css('.order-confirmation, .thank-you, :text("order confirmed")'),
    css(':text("thank you"), :text("order number"), h1:has-text("Confirmation")'),
)

# ==========================================
# ACCOUNT
# ==========================================

AUTH_URL_MARKERS = re.compile(r'auth\.riotgames\.com|/login|/signin|/sign-in|/authenticate', re.IGNORECASE)

HEADER_SIGN_IN_EXACT = (
    css('header a, header button, nav a, nav button', has_text=pattern(r'^\s*(sign\s*in|log\s*in)\s*$')),
)

SIGNED_IN_INDICATORS = (
    role('button', pattern('sign out|log out')),
    css('a:has-text("Sign Out"), button:has-text("Sign Out")'),
    css('a:has-text("My Account"), button:has-text("My Account")'),
    css('header [class*="logged-in"], header [class*="signed-in"]'),
    css('[data-user-logged-in="true"]'),
)

HEADER_ACCOUNT_TEXT = re.compile(r'my account|sign out|log out', re.IGNORECASE)

SIGN_IN_TRIGGER = (
    role('link', pattern('sign in|log in')),
    role('button', pattern('sign in|log in')),
    css('header a:has-text("Sign In"), header button:has-text("Sign In")'),
    css('nav a:has-text("Sign In"), nav button:has-text("Sign In")'),
    css('a:has-text("Log In"), button:has-text("Log In")'),
    css('[aria-label*="sign in" i], [aria-label*="log in" i]'),
    css('.sign-in, .signin, .login, #sign-in, #login'),
    css('header [href*="login"], header [href*="signin"]'),
)

SIGN_IN_LINK_TEXT = re.compile(r'sign in|log in|login|signin', re.IGNORECASE)

USERNAME_INPUT = (
    role('textbox', pattern('username|email')),
    css('input[name="username"]'),
    css('input[name="email"]'),
    css('input[type="email"]'),
    css('input[placeholder*="username" i], input[placeholder*="email" i]'),
    css('#username, #email, #login'),
)

PASSWORD_INPUT = (
    css('input[type="password"]'),
    css('input[name="password"]'),
    css('input[placeholder*="password" i]'),
    css('#password'),
)

SIGN_IN_SUBMIT = (
    role('button', pattern('sign in|log in|login|submit')),
    css('button[type="submit"]'),
    css('button:has-text("Sign In"), button:has-text("Log In")'),
    css('.login-button, .submit-button, .sign-in-button'),
)

SIGN_IN_ERROR = (
    css('[role="alert"]'),
    css('.error, .error-message, [class*="error"]'),
    css('.field-error, .input-error, .invalid-feedback'),
)

SIGN_IN_ERROR_TEXT = re.compile(r'invalid|incorrect|wrong|failed|error', re.IGNORECASE)

ACCOUNT_MENU = (
    css('[aria-label*="account" i], [aria-label*="profile" i]'),
    css('header [class*="account"]'),
    css('header [class*="user"], header [class*="avatar"]'),
    css('.account-menu, .user-menu, .profile-menu'),
    css('[data-testid*="account"], [data-testid*="user"]'),
)

SIGN_OUT = (
    role('button', pattern('sign out|log out')),
    role('link', pattern('sign out|log out')),
    css('button:has-text("Sign Out"), a:has-text("Sign Out")'),
    css('button:has-text("Log Out"), a:has-text("Log Out")'),
    css('button:has-text("Logout"), a:has-text("Logout")'),
    css('[aria-label*="sign out" i], [aria-label*="log out" i]'),
    css('.sign-out, .signout, .logout, #sign-out, #logout'),
)

SIGN_OUT_IN_MENU = (
    text(pattern('^(sign out|log out|logout)$'), within='[class*="dropdown"], [class*="menu"]'),
)
