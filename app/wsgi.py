from app.storefront import create_app

app = create_app()
