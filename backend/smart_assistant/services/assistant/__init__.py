"""Assistant request pipeline and response envelope."""
