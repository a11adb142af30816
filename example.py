import asyncio

from fx_lens import ExtensionSettings, FxLens
from fx_lens.document.live import LiveDocument

print(FxLens.__version__)  # 0.1.0

# Default Usage: rates cached in ~/.fx_lens/rate_cache.db
fx = FxLens(settings=ExtensionSettings(target_currency="INR"))

# Single conversion (target and offset come from the settings)
result = fx.convert(45.50, "EUR")
print(result)
# => ConversionResult(source_amount=45.5, source_currency='EUR', target_amount=..., target_currency='INR', ...)

# Raw rate table for a base currency
table = fx.rates("USD")
print(table.rate_for("INR") if table else "rates unavailable")

# Batch conversion of pasted lines; lines without a symbol use the base currency
for line in fx.convert_batch(["$19.99", "£1,200", "250"]):
    print(f"{line.original} → {line.label}")

# Annotate a static HTML page
html = fx.annotate_html('<p class="price">Only $129.99 today</p>')
print(html)
# => <p class="price">Only $129.99<span class="currency-conversion-inline" ...> (₹10,823.00)</span> today</p>

# Pre-fetch the major currencies and inspect the cache
outcomes = fx.update_rates(["USD", "EUR", "GBP"])
print([(o.currency, o.success) for o in outcomes])
print(fx.cache_info())


# Live document: annotations follow page mutations after a quiet period
async def watch_page() -> None:
    document = LiveDocument.from_html("<body><div id='cart'><p>Subtotal: €80</p></div></body>")
    with fx.open_session(document) as session:
        await asyncio.sleep(0.6)
        await session.drain()
        cart = document.body.find(id="cart")
        document.append_child(cart, document.new_tag("p", text="Shipping: €5.50"))
        await asyncio.sleep(1.6)
        await session.drain()
    print(document.render())


asyncio.run(watch_page())

fx.close()
