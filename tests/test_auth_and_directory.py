from app.db.models import Profile, ProfessionalProfile, Review, BookingStatus, UserRole


class TestAuth:
    def test_signup_professional_creates_profile(self, client, db):
        response = client.post("/api/auth/signup", json={
            "email": "Camila@Correo.co",
            "password": "supersecret",
            "full_name": "Camila Rojas",
            "role": "professional",
        })

        assert response.status_code == 201
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["email"] == "camila@correo.co"
        user = db.query(Profile).filter(Profile.email == "camila@correo.co").one()
        assert user.professional_profile is not None

    def test_signup_as_admin_is_refused(self, client):
        response = client.post("/api/auth/signup", json={
            "email": "root@correo.co", "password": "supersecret", "full_name": "Root", "role": "admin",
        })
        assert response.status_code == 403

    def test_duplicate_email(self, client, customer):
        response = client.post("/api/auth/signup", json={
            "email": customer.email.upper(), "password": "supersecret", "full_name": "Maria Again",
        })
        assert response.status_code == 400
        assert response.json()["error"] == "Email already registered"

    def test_login(self, client, customer):
        ok = client.post("/api/auth/login", json={"email": customer.email, "password": "password123"})
        bad = client.post("/api/auth/login", json={"email": customer.email, "password": "wrong-password"})

        assert ok.status_code == 200
        assert ok.json()["user"]["id"] == customer.id
        assert bad.status_code == 401

    def test_me_and_profile_update(self, client, professional, headers_for):
        response = client.put(
            "/api/auth/me", json={"city": "Medellin", "hourly_rate": 45_000}, headers=headers_for(professional)
        )

        assert response.status_code == 200
        assert response.json()["professional_profile"]["city"] == "Medellin"
        assert client.get("/api/auth/me", headers=headers_for(professional)).json()["id"] == professional.id

    def test_customers_cannot_set_professional_fields(self, client, customer, headers_for):
        response = client.put("/api/auth/me", json={"bio": "Hola"}, headers=headers_for(customer))
        assert response.status_code == 400

    def test_garbage_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


class TestDirectory:
    def _second_pro(self, make_user, **fields):
        defaults = {"city": "Medellin", "primary_services": ["gardening"], "rating": 3.5, "review_count": 4}
        defaults.update(fields)
        return make_user("andres@correo.co", UserRole.PROFESSIONAL, **defaults)

    def test_lists_listed_professionals_by_rating(self, client, db, professional, make_user):
        self._second_pro(make_user)
        profile = db.query(ProfessionalProfile).filter(ProfessionalProfile.profile_id == professional.id).one()
        profile.rating = 4.8
        db.commit()

        response = client.get("/api/directory/professionals")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [p["city"] for p in data["items"]] == ["Bogota", "Medellin"]

    def test_filters(self, client, professional, make_user):
        self._second_pro(make_user)

        by_city = client.get("/api/directory/professionals", params={"city": "medellin"}).json()
        by_service = client.get("/api/directory/professionals", params={"service": "Laundry"}).json()
        by_rating = client.get("/api/directory/professionals", params={"min_rating": 3}).json()

        assert [p["city"] for p in by_city["items"]] == ["Medellin"]
        assert [p["id"] for p in by_service["items"]] == [professional.id]
        assert by_rating["total"] == 1

    def test_unlisted_professionals_are_hidden(self, client, make_user):
        hidden = self._second_pro(make_user, is_listed=False)

        listing = client.get("/api/directory/professionals").json()

        assert hidden.id not in [p["id"] for p in listing["items"]]
        assert client.get(f"/api/directory/professionals/{hidden.id}").status_code == 404

    def test_detail_omits_hidden_reviews(self, client, db, customer, professional, make_booking):
        first = make_booking(BookingStatus.COMPLETED, hours_ahead=-30, amount_captured=11_500_000)
        second = make_booking(BookingStatus.COMPLETED, hours_ahead=-5, amount_captured=11_500_000)
        db.add_all([
            Review(booking_id=first.id, customer_id=customer.id, professional_id=professional.id, rating=5,
                   comment="Excelente"),
            Review(booking_id=second.id, customer_id=customer.id, professional_id=professional.id, rating=1,
                   comment="Spam", is_hidden=True),
        ])
        db.commit()

        response = client.get(f"/api/directory/professionals/{professional.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["professional"]["full_name"] == professional.full_name
        assert [r["comment"] for r in data["reviews"]] == ["Excelente"]

    def test_customers_are_not_in_directory(self, client, customer):
        assert client.get(f"/api/directory/professionals/{customer.id}").status_code == 404
